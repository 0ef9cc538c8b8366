"""
Identifies the history command and extracts clean prompt text from a message.
"""
import re
from typing import Optional

from .types import Command, ParsedCommand
from .utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_HISTORY_COMMAND = "!history"


def strip_bot_mention(content: str, bot_user_id: Optional[str]) -> str:
    """Remove every ``<@id>`` / ``<@!id>`` mention of the bot and trim."""
    content = content or ""
    if bot_user_id:
        content = re.sub(rf"<@!?{re.escape(str(bot_user_id))}>", "", content)
    return content.strip()


def parse_command(
    content: str, history_command: str = DEFAULT_HISTORY_COMMAND
) -> Optional[ParsedCommand]:
    """
    Classify mention-free message text.

    Returns HISTORY when the text is exactly the history token (any case),
    CHAT for any other non-empty text, and None for empty text.
    """
    content = (content or "").strip()
    if not content:
        return None

    if content.lower() == history_command.lower():
        logger.debug("Parsed history command", extra={"subsys": "parser", "event": "command.found"})
        return ParsedCommand(command=Command.HISTORY, cleaned_content="")

    return ParsedCommand(command=Command.CHAT, cleaned_content=content)
