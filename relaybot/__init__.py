"""Discord relay bot for Gemini text and image conversations."""

__version__ = "1.0.0"
