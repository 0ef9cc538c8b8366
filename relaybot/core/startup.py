"""
Contains bot startup and pre-flight check logic.
"""
import hashlib

import discord

from relaybot.exceptions import ConfigurationError
from relaybot.utils.logging import SensitiveDataFilter, get_logger


def run_pre_flight_checks(config: dict) -> None:
    """Fail fast on configuration the bot cannot run without."""
    logger = get_logger(__name__)
    logger.info("--- Running Pre-Flight Checklist ---")

    token = config.get("DISCORD_TOKEN")
    if not token:
        logger.critical("DISCORD_TOKEN is missing. Bot cannot start.")
        raise ConfigurationError("DISCORD_TOKEN not found in environment.")
    token_hash = hashlib.sha256(token.encode()).hexdigest()[:12]
    logger.info(f"[INIT] Token hash={token_hash} validated")

    keys = config.get("GEMINI_API_KEYS") or []
    if not keys:
        raise ConfigurationError("GEMINI_API_KEYS must list at least one API key.")
    SensitiveDataFilter.register_secrets([token, *keys])
    logger.info(
        f"[INIT] {len(keys)} API key(s), rotating every {config['API_CALL_THRESHOLD']} calls"
    )

    if not config.get("AUTHORIZED_USERS") and not config.get("ROLE"):
        logger.warning("⚠️  Neither AUTHORIZED_USERS nor ROLE is set; every request will be denied.")
    if config.get("AUTHORIZED_CHANNELS") is not None:
        logger.info(f"[INIT] Channel allow-list: {len(config['AUTHORIZED_CHANNELS'])} channel(s)")

    intents = create_bot_intents()
    required_intents = {
        "message_content": intents.message_content,
        "guilds": intents.guilds,
        "guild_messages": intents.guild_messages,
        "dm_messages": intents.dm_messages,
        "members": intents.members,
    }
    missing = [name for name, enabled in required_intents.items() if not enabled]
    if missing:
        logger.critical(f"Required intents disabled: {', '.join(missing)}")
    else:
        logger.info("[INIT] Intents verified")

    logger.info(f"[INIT] discord.py version: {discord.__version__}")
    logger.info("--- Pre-Flight Checklist Complete ---")


def create_bot_intents() -> discord.Intents:
    """Create Discord intents with all required permissions."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.guild_messages = True
    intents.dm_messages = True
    intents.members = True  # role checks need member data
    return intents
