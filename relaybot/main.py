"""
Discord bot main entry point - BOOTSTRAP ONLY
This module should contain NO business logic, only orchestration.
"""
import asyncio
import os
import sys
from typing import NoReturn

import aiohttp
import discord

from relaybot.config import load_config, validate_required_env
from relaybot.core.bot import RelayBot
from relaybot.core.cli import parse_arguments, show_version_info, validate_configuration_only
from relaybot.core.startup import create_bot_intents, run_pre_flight_checks
from relaybot.exceptions import ConfigurationError
from relaybot.utils.logging import get_logger, init_logging, shutdown_logging_and_exit

LOGIN_ATTEMPTS = 3
LOGIN_BASE_DELAY = 5  # seconds


async def main() -> NoReturn:
    args = parse_arguments()
    if args.debug:
        os.environ["LOG_LEVEL"] = "DEBUG"

    init_logging()
    logger = get_logger(__name__)

    if args.version:
        show_version_info()
        shutdown_logging_and_exit(0)

    if args.config_check:
        shutdown_logging_and_exit(0 if validate_configuration_only() else 1)

    try:
        validate_required_env()
        config = load_config()
        run_pre_flight_checks(config)
    except ConfigurationError as e:
        logger.critical(f"Configuration error during startup: {e}")
        shutdown_logging_and_exit(1)

    bot = RelayBot(config=config, intents=create_bot_intents())

    async with bot:
        for attempt in range(LOGIN_ATTEMPTS):
            try:
                logger.info(f"Connecting to Discord... (Attempt {attempt + 1}/{LOGIN_ATTEMPTS})")
                await bot.start(config["DISCORD_TOKEN"])
                break
            except discord.LoginFailure:
                logger.critical("Discord rejected the token. Please check DISCORD_TOKEN.")
                shutdown_logging_and_exit(1)
            except (discord.HTTPException, aiohttp.ClientConnectorError):
                if attempt == LOGIN_ATTEMPTS - 1:
                    logger.error("Failed to connect to Discord.")
                    shutdown_logging_and_exit(1)
                delay = LOGIN_BASE_DELAY * (2 ** attempt)
                logger.warning(f"Connection failed, retrying in {delay}s...")
                await asyncio.sleep(delay)

    logger.info("Bot event loop exited.")
    shutdown_logging_and_exit(0)


def run_bot() -> None:
    """Entry point for running the bot with proper error handling."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nBot shutdown requested by user.")
        shutdown_logging_and_exit(0)
    except Exception as e:
        print(f"FATAL ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        shutdown_logging_and_exit(1)


if __name__ == "__main__":
    run_bot()
