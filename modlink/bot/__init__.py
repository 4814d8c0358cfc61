"""Discord bot surface: slash commands and gateway event logging."""
