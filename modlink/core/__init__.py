"""Configuration, logging, errors and the application context."""
