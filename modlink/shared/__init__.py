"""Models, persistence and caching shared by the auth site and the bot."""
