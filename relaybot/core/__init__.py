"""Discord client, startup checks and CLI handling."""
