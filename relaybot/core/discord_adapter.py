"""
Conversion between discord.py objects and the dispatcher's platform-neutral
types.
"""
from typing import Optional, Tuple

import discord

from relaybot.command_parser import strip_bot_mention
from relaybot.dispatch import ReplyChannel
from relaybot.types import Attachment, ChannelKind, InboundMessage, MemberRole

_GROUP_CHANNEL_TYPES = {
    discord.ChannelType.text,
    discord.ChannelType.news,
}


def channel_kind_of(channel) -> ChannelKind:
    channel_type = getattr(channel, "type", None)
    if channel_type == discord.ChannelType.private:
        return ChannelKind.DM
    if channel_type in _GROUP_CHANNEL_TYPES:
        return ChannelKind.GROUP
    return ChannelKind.OTHER


def member_roles_of(author) -> Tuple[MemberRole, ...]:
    """Roles of a guild member; users outside a guild have none."""
    roles = getattr(author, "roles", None) or ()
    return tuple(MemberRole(id=str(role.id), name=str(role.name)) for role in roles)


def to_inbound(message: discord.Message, bot_user: Optional[discord.ClientUser]) -> InboundMessage:
    bot_id = str(bot_user.id) if bot_user else None
    addressed = bool(bot_user) and any(
        getattr(user, "id", None) == bot_user.id for user in message.mentions
    )
    attachments = tuple(
        Attachment(
            url=a.url,
            content_type=a.content_type,
            size=a.size,
            filename=a.filename,
        )
        for a in message.attachments
    )
    return InboundMessage(
        message_id=str(message.id),
        author_id=str(message.author.id),
        channel_id=str(message.channel.id),
        channel_kind=channel_kind_of(message.channel),
        content=strip_bot_mention(message.content, bot_id),
        author_is_bot=bool(message.author.bot),
        addressed=addressed,
        attachments=attachments,
        roles=member_roles_of(message.author),
    )


class DiscordChannel(ReplyChannel):
    """Replies to one discord.Message."""

    def __init__(self, message: discord.Message):
        self.message = message

    async def reply(self, text: str) -> None:
        await self.message.reply(text, mention_author=False)

    async def typing(self) -> None:
        # An empty typing() block fires exactly one typing event.
        async with self.message.channel.typing():
            pass
