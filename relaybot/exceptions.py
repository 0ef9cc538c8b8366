"""
Custom exceptions for the relay bot, providing a structured error hierarchy.
"""
from typing import Optional


class BotBaseException(Exception):
    """Base exception for all custom exceptions in this bot."""

    # Reply sent to the user when this error ends a message's processing.
    user_message: str = "Sorry, there was an error processing your request."

    def __init__(self, message: str = "", *, user_message: Optional[str] = None):
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class ConfigurationError(BotBaseException):
    """Raised for errors in bot configuration, like missing keys or invalid values."""

    pass


class APIError(BotBaseException):
    """Raised for errors related to external API interactions."""

    pass


class BackendError(APIError):
    """The AI service failed: network, quota or malformed response."""

    user_message = "Error processing your request."

    def __init__(self, message: str = "", *, rate_limited: bool = False, **kwargs):
        super().__init__(message, **kwargs)
        self.rate_limited = rate_limited


class AuthorizationDenied(BotBaseException):
    """The sender may not invoke the bot here. Carries the deny reason."""

    def __init__(self, reason, message: str = "", **kwargs):
        super().__init__(message or reason.name, **kwargs)
        self.reason = reason


class FileProcessingError(BotBaseException):
    """Raised when a user-uploaded file cannot be retrieved or read."""

    user_message = "❌ I couldn't download that attachment. Please try again."


class UnsupportedAttachment(FileProcessingError):
    """The attachment's declared MIME type is not a supported image type."""

    user_message = "❌ Unsupported file format. Please send a PNG, JPEG, WEBP, HEIC or HEIF image."


class AttachmentTooLarge(FileProcessingError):
    """The attachment exceeds the configured byte ceiling."""

    def __init__(self, size: int, limit: int, **kwargs):
        super().__init__(f"attachment is {size} bytes, limit is {limit}", **kwargs)
        self.size = size
        self.limit = limit
        if "user_message" not in kwargs:
            self.user_message = (
                f"❌ File too large. Please send an image under {limit / (1024 * 1024):g} MB."
            )


class DeliveryError(APIError):
    """Sending a reply to the chat platform failed."""

    pass
