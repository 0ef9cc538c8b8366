from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Tuple


class Command(Enum):
    """Enumeration of all supported bot commands."""

    CHAT = auto()  # Prompt for the AI backend, default command
    HISTORY = auto()  # Dump the caller's conversation window


@dataclass
class ParsedCommand:
    """Represents a parsed command with its type and cleaned content."""

    command: Command
    cleaned_content: str


class ChannelKind(Enum):
    DM = "dm"
    GROUP = "group"
    OTHER = "other"


class Role(str, Enum):
    """Turn originator, in the backend's two-party vocabulary."""

    USER = "user"
    MODEL = "model"

    @classmethod
    def from_logical(cls, role: str) -> "Role":
        """Map the caller's ``user``/``assistant`` roles onto ``user``/``model``."""
        if isinstance(role, Role):
            return role
        normalized = (role or "").strip().lower()
        if normalized in ("assistant", "model"):
            return cls.MODEL
        if normalized == "user":
            return cls.USER
        raise ValueError(f"Unknown conversation role: {role!r}")


@dataclass(frozen=True)
class Turn:
    role: Role
    text: str


@dataclass(frozen=True)
class ConversationKey:
    channel_id: str
    user_id: str

    def __str__(self) -> str:
        return f"{self.channel_id}-{self.user_id}"


@dataclass(frozen=True)
class MemberRole:
    """A platform role held by the sender; matched by name or by id."""

    id: str
    name: str


class DenyReason(Enum):
    NOT_AUTHORIZED_DM = auto()
    CHANNEL_NOT_AUTHORIZED = auto()
    MISSING_ROLE = auto()
    UNKNOWN_CHANNEL_KIND = auto()


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: Optional[DenyReason] = None

    @classmethod
    def allow(cls) -> "AuthorizationDecision":
        return cls(True)

    @classmethod
    def deny(cls, reason: DenyReason) -> "AuthorizationDecision":
        return cls(False, reason)


@dataclass
class Attachment:
    """An attachment as delivered by the chat platform."""

    url: str
    content_type: Optional[str] = None
    size: Optional[int] = None
    filename: str = ""
    data: Optional[bytes] = None


@dataclass(frozen=True)
class ImagePayload:
    """Image bytes ready to hand to the AI backend."""

    data: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class InboundMessage:
    """Platform-neutral view of one inbound chat message."""

    message_id: str
    author_id: str
    channel_id: str
    channel_kind: ChannelKind
    content: str = ""
    author_is_bot: bool = False
    addressed: bool = True
    attachments: Tuple[Attachment, ...] = ()
    roles: Tuple[MemberRole, ...] = field(default_factory=tuple)

    @property
    def key(self) -> ConversationKey:
        return ConversationKey(self.channel_id, self.author_id)


__all__ = [
    "Attachment",
    "AuthorizationDecision",
    "ChannelKind",
    "Command",
    "ConversationKey",
    "DenyReason",
    "ImagePayload",
    "InboundMessage",
    "MemberRole",
    "ParsedCommand",
    "Role",
    "Turn",
]
