"""
Unit tests for mention stripping and command parsing.
"""

import pytest

from relaybot.command_parser import parse_command, strip_bot_mention
from relaybot.types import Command


class TestStripBotMention:
    """Test the strip_bot_mention function."""

    def test_plain_mention(self):
        """Test leading mention removal."""
        assert strip_bot_mention("<@999> hello there", "999") == "hello there"

    def test_nickname_mention(self):
        """Test the <@!id> nickname form."""
        assert strip_bot_mention("<@!999> hello", "999") == "hello"

    def test_mention_in_the_middle(self):
        """Test that every occurrence is removed."""
        assert strip_bot_mention("hey <@999> what's up <@999>", "999") == "hey  what's up"

    def test_other_users_kept(self):
        """Test that mentions of other users survive."""
        assert strip_bot_mention("<@999> ask <@123>", "999") == "ask <@123>"

    def test_no_bot_id(self):
        """Test that without a bot id only whitespace is trimmed."""
        assert strip_bot_mention("  <@999> hi  ", None) == "<@999> hi"

    def test_none_content(self):
        assert strip_bot_mention(None, "999") == ""


class TestParseCommand:
    """Test the parse_command function."""

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_content(self, content):
        """Test that empty text yields no command."""
        assert parse_command(content) is None

    @pytest.mark.parametrize("content", ["!history", "!HISTORY", "  !History  "])
    def test_history_command(self, content):
        """Test case-insensitive history detection."""
        parsed = parse_command(content)
        assert parsed.command is Command.HISTORY
        assert parsed.cleaned_content == ""

    def test_history_with_trailing_text_is_chat(self):
        """Test that only the bare token is the history command."""
        parsed = parse_command("!history please")
        assert parsed.command is Command.CHAT
        assert parsed.cleaned_content == "!history please"

    def test_chat(self):
        """Test that ordinary text is a chat prompt."""
        parsed = parse_command("  What is the weather?  ")
        assert parsed.command is Command.CHAT
        assert parsed.cleaned_content == "What is the weather?"

    def test_custom_history_token(self):
        """Test a configured history token."""
        assert parse_command("!log", history_command="!log").command is Command.HISTORY
        assert parse_command("!history", history_command="!log").command is Command.CHAT
