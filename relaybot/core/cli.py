"""
Handles command-line interface parsing and actions.
"""
import argparse
import sys

from relaybot import __version__
from relaybot.config import load_config, validate_required_env
from relaybot.exceptions import ConfigurationError
from relaybot.utils.logging import get_logger

_SECRET_MARKERS = ("TOKEN", "KEY", "SECRET")


def parse_arguments(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Discord Gemini relay bot")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("--config-check", action="store_true", help="Validate configuration and exit.")
    parser.add_argument("--version", action="store_true", help="Show version info and exit.")
    return parser.parse_args(argv)


def show_version_info():
    print(f"Discord Gemini relay bot - Version {__version__}")
    print(f"Python Version: {sys.version}")


def redact_config(config: dict) -> dict:
    """Copy of ``config`` safe to print: secrets are masked."""
    redacted = {}
    for key, value in config.items():
        if any(marker in key for marker in _SECRET_MARKERS) and value:
            if isinstance(value, (list, tuple)):
                value = [f"***{str(v)[-4:]}" for v in value]
            else:
                value = f"***{str(value)[-4:]}"
        redacted[key] = value
    return redacted


def validate_configuration_only() -> bool:
    """Validate configuration and log the active settings. Returns False on error."""
    logger = get_logger(__name__)
    try:
        logger.info("--- Running Configuration-Only Validation ---", extra={"subsys": "core", "event": "config_check_start"})
        validate_required_env()
        config = load_config()
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}", extra={"subsys": "core", "event": "config_fail"})
        return False

    logger.info("Configuration validation successful. The following settings are active:", extra={"subsys": "core", "event": "config_valid_start"})
    for key, value in redact_config(config).items():
        logger.info(f"  • {key}: {value}", extra={"subsys": "core", "event": "config_valid"})
    return True
