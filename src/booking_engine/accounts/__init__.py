"""Business accounts and their messaging credentials."""
