"""Configuration loading and environment setup."""
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .utils.env import get_bool, get_float, get_int, get_list, get_str
from .utils.logging import get_logger

logger = get_logger(__name__)

# Load environment variables from .env file with explicit path
load_dotenv(dotenv_path=Path.cwd() / ".env")

# Also try loading from the project root in case we're running from a subdirectory
load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")

DEFAULT_GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/openai/"

DEFAULT_SYSTEM_PROMPT = (
    "You are Hr AI, a helpful Discord bot. You have access to chat history "
    "and should use it to provide contextual responses."
)

DEFAULT_SUPPORTED_IMAGE_TYPES = [
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/heic",
    "image/heif",
]

REQUIRED_VARS = ("DISCORD_TOKEN", "GEMINI_API_KEYS")


def validate_required_env() -> None:
    """Validate that all required environment variables are present."""
    missing_vars = [var for var in REQUIRED_VARS if not get_str(var)]
    if missing_vars:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing_vars)}"
        )


def load_system_prompt(prompt_file: Optional[str] = None) -> str:
    """Resolve the system instruction: SYSTEM_PROMPT, then PROMPT_FILE, then the default."""
    inline = os.getenv("SYSTEM_PROMPT")
    if inline and inline.strip():
        return inline.strip()

    prompt_file = prompt_file or get_str("PROMPT_FILE")
    if prompt_file:
        try:
            text = Path(prompt_file).read_text(encoding="utf-8").strip()
        except OSError as e:
            raise ConfigurationError(f"PROMPT_FILE could not be read: {prompt_file} ({e})")
        if text:
            logger.info(f"✅ Loaded system prompt from {prompt_file}")
            return text

    return DEFAULT_SYSTEM_PROMPT


def load_config() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    config = {
        # DISCORD
        "DISCORD_TOKEN": get_str("DISCORD_TOKEN") or None,
        "HISTORY_COMMAND": get_str("HISTORY_COMMAND", "!history").lower(),

        # GEMINI BACKEND
        "GEMINI_API_KEYS": get_list("GEMINI_API_KEYS", []),
        "GEMINI_API_BASE": get_str("GEMINI_API_BASE", DEFAULT_GEMINI_API_BASE),
        "TEXT_MODEL": get_str("TEXT_MODEL", "gemini-1.5-flash"),
        "VISION_MODEL": get_str("VISION_MODEL", "gemini-1.5-flash"),
        "SYSTEM_PROMPT": load_system_prompt(),
        "TEXTGEN_TIMEOUT_SECONDS": get_float("TEXTGEN_TIMEOUT_SECONDS", 45.0),
        "DEFAULT_IMAGE_PROMPT": get_str("DEFAULT_IMAGE_PROMPT", "Describe this image."),

        # ACCESS CONTROL
        "ROLE": get_str("ROLE"),
        "AUTHORIZED_USERS": get_list("AUTHORIZED_USERS", []),
        # None means no channel restriction
        "AUTHORIZED_CHANNELS": get_list("AUTHORIZED_CHANNELS"),

        # CONVERSATION MEMORY
        "MAX_HISTORY": get_int("MAX_HISTORY", 5),

        # CREDENTIAL ROTATION
        "API_CALL_THRESHOLD": get_int("API_CALL_THRESHOLD", 60),
        "ROTATE_ON_RATE_LIMIT": get_bool("ROTATE_ON_RATE_LIMIT", False),

        # ATTACHMENTS
        "MAX_ATTACHMENT_BYTES": get_int("MAX_ATTACHMENT_BYTES", 3 * 1024 * 1024),
        "SUPPORTED_IMAGE_TYPES": [
            t.lower() for t in get_list("SUPPORTED_IMAGE_TYPES", DEFAULT_SUPPORTED_IMAGE_TYPES)
        ],
        "ATTACHMENT_STAGE_TO_DISK": get_bool("ATTACHMENT_STAGE_TO_DISK", False),
        "TEMP_DIR": Path(get_str("TEMP_DIR", "temp")),
        "DOWNLOAD_TIMEOUT_SECONDS": get_float("DOWNLOAD_TIMEOUT_SECONDS", 15.0),

        # DELIVERY
        "MAX_CHUNK_LENGTH": get_int("MAX_CHUNK_LENGTH", 1900),
        "TYPING_INTERVAL_SECONDS": get_float("TYPING_INTERVAL_SECONDS", 5.0),
        "CHUNK_DELAY_SECONDS": get_float("CHUNK_DELAY_SECONDS", 0.5),

        # LOGGING
        "LOG_LEVEL": get_str("LOG_LEVEL", "INFO").upper(),
        "LOG_JSONL_PATH": get_str("LOG_JSONL_PATH", "logs/bot.jsonl"),
    }

    if config["MAX_HISTORY"] < 1:
        raise ConfigurationError("MAX_HISTORY must be at least 1")
    if config["API_CALL_THRESHOLD"] < 1:
        raise ConfigurationError("API_CALL_THRESHOLD must be at least 1")
    if config["MAX_CHUNK_LENGTH"] < 1:
        raise ConfigurationError("MAX_CHUNK_LENGTH must be at least 1")

    return config
