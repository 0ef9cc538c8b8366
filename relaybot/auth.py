"""
Access control for inbound messages.

The decision is a pure function of the sender, the channel and the sender's
roles, given the configured allow-lists. Turning a denial into a reply is the
dispatcher's job.
"""
from typing import Iterable, Optional

from .exceptions import AuthorizationDenied
from .types import AuthorizationDecision, ChannelKind, DenyReason, MemberRole

DENY_MESSAGES = {
    DenyReason.NOT_AUTHORIZED_DM: "⚠️ You are not authorized to use this bot in DMs.",
    DenyReason.CHANNEL_NOT_AUTHORIZED: "⚠️ Bot is not authorized in this channel.",
    DenyReason.MISSING_ROLE: "⚠️ You need the {role} role to use this bot.",
    DenyReason.UNKNOWN_CHANNEL_KIND: "⚠️ This bot cannot be used in this kind of channel.",
}


class AuthorizationEngine:
    """Decides whether a sender may invoke the bot."""

    def __init__(
        self,
        authorized_users: Iterable[str],
        required_role: str = "",
        authorized_channels: Optional[Iterable[str]] = None,
    ):
        self.authorized_users = frozenset(str(u) for u in authorized_users)
        self.required_role = (required_role or "").strip()
        # None: no channel restriction configured
        self.authorized_channels = (
            frozenset(str(c) for c in authorized_channels)
            if authorized_channels is not None
            else None
        )

    @classmethod
    def from_config(cls, config: dict) -> "AuthorizationEngine":
        return cls(
            authorized_users=config.get("AUTHORIZED_USERS") or [],
            required_role=config.get("ROLE", ""),
            authorized_channels=config.get("AUTHORIZED_CHANNELS"),
        )

    def has_required_role(self, member_roles: Iterable[MemberRole]) -> bool:
        if not self.required_role:
            return False
        return any(
            role.name == self.required_role or role.id == self.required_role
            for role in member_roles
        )

    def decide(
        self,
        sender: str,
        channel_kind: ChannelKind,
        channel_id: str,
        member_roles: Iterable[MemberRole] = (),
    ) -> AuthorizationDecision:
        if str(sender) in self.authorized_users:
            return AuthorizationDecision.allow()

        if channel_kind is ChannelKind.DM:
            return AuthorizationDecision.deny(DenyReason.NOT_AUTHORIZED_DM)

        if channel_kind is ChannelKind.GROUP:
            if (
                self.authorized_channels is not None
                and str(channel_id) not in self.authorized_channels
            ):
                return AuthorizationDecision.deny(DenyReason.CHANNEL_NOT_AUTHORIZED)
            if not self.has_required_role(member_roles):
                return AuthorizationDecision.deny(DenyReason.MISSING_ROLE)
            return AuthorizationDecision.allow()

        return AuthorizationDecision.deny(DenyReason.UNKNOWN_CHANNEL_KIND)

    def deny_message(self, reason: DenyReason) -> str:
        return DENY_MESSAGES[reason].format(role=self.required_role or "required")

    def authorize(
        self,
        sender: str,
        channel_kind: ChannelKind,
        channel_id: str,
        member_roles: Iterable[MemberRole] = (),
    ) -> None:
        """Raise ``AuthorizationDenied`` unless :meth:`decide` allows the sender."""
        decision = self.decide(sender, channel_kind, channel_id, member_roles)
        if not decision.allowed:
            raise AuthorizationDenied(
                decision.reason, user_message=self.deny_message(decision.reason)
            )
