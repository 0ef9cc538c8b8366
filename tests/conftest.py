"""
Shared fixtures for relay bot tests.

Components are built directly with small, explicit settings so tests never
depend on the process environment.
"""
from typing import List, Optional
from unittest.mock import AsyncMock

import pytest

from relaybot.auth import AuthorizationEngine
from relaybot.credentials import CredentialRotator
from relaybot.dispatch import MessageDispatcher, ReplyChannel
from relaybot.media_ingestion import AttachmentIngestionPipeline
from relaybot.memory.context_manager import ConversationContextStore
from relaybot.types import Attachment, ChannelKind, InboundMessage, MemberRole

OWNER_ID = "1000"
MEMBER_ID = "2000"
DM_CHANNEL_ID = "9001"
GUILD_CHANNEL_ID = "9002"
REQUIRED_ROLE = "AI User"

SUPPORTED_TYPES = ["image/png", "image/jpeg", "image/webp", "image/heic", "image/heif"]
MIB = 1024 * 1024


class FakeContent:
    def __init__(self, body: bytes, piece_size: int = 64 * 1024):
        self._body = body
        self._piece_size = piece_size

    async def iter_chunked(self, size):
        for start in range(0, len(self._body), self._piece_size):
            yield self._body[start:start + self._piece_size]


class FakeResponse:
    def __init__(self, body: bytes = b"", status: int = 200, headers=None):
        self.status = status
        self.headers = headers or {}
        self.content = FakeContent(body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Minimal stand-in for aiohttp.ClientSession.get()."""

    def __init__(self, response: FakeResponse):
        self.response = response
        self.requested = []

    def get(self, url, **kwargs):
        self.requested.append(url)
        return self.response


class RecordingChannel(ReplyChannel):
    """ReplyChannel that records replies and typing events."""

    def __init__(self, fail_on_reply: Optional[int] = None):
        self.replies: List[str] = []
        self.typing_calls = 0
        self._fail_on_reply = fail_on_reply
        self._attempts = 0

    async def reply(self, text: str) -> None:
        self._attempts += 1
        if self._fail_on_reply is not None and self._attempts == self._fail_on_reply:
            raise RuntimeError("send failed")
        self.replies.append(text)

    async def typing(self) -> None:
        self.typing_calls += 1


def make_message(
    content: str = "Hello",
    author_id: str = OWNER_ID,
    channel_kind: ChannelKind = ChannelKind.DM,
    channel_id: str = DM_CHANNEL_ID,
    attachments=(),
    roles=(),
    addressed: bool = True,
    author_is_bot: bool = False,
    message_id: str = "555",
) -> InboundMessage:
    return InboundMessage(
        message_id=message_id,
        author_id=author_id,
        channel_id=channel_id,
        channel_kind=channel_kind,
        content=content,
        author_is_bot=author_is_bot,
        addressed=addressed,
        attachments=tuple(attachments),
        roles=tuple(roles),
    )


def image_attachment(
    data: Optional[bytes] = b"\x89PNG fake",
    content_type: str = "image/png",
    size: Optional[int] = None,
    url: str = "https://cdn.example.com/attachments/1/2/image.png",
) -> Attachment:
    return Attachment(
        url=url,
        content_type=content_type,
        size=len(data) if size is None and data is not None else size,
        filename=url.rsplit("/", 1)[-1],
        data=data,
    )


@pytest.fixture
def auth():
    return AuthorizationEngine(authorized_users=[OWNER_ID], required_role=REQUIRED_ROLE)


@pytest.fixture
def store():
    return ConversationContextStore(max_history=5)


@pytest.fixture
def rotator():
    return CredentialRotator(["key-a", "key-b", "key-c"], threshold=60)


@pytest.fixture
def pipeline(tmp_path):
    return AttachmentIngestionPipeline(
        supported_types=SUPPORTED_TYPES,
        max_bytes=3 * MIB,
        temp_dir=tmp_path / "staging",
    )


@pytest.fixture
def backend():
    backend = AsyncMock(name="GeminiBackend")
    backend.generate_text.return_value = "Hi there! How can I help?"
    backend.generate_from_image.return_value = "A small test image."
    return backend


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def dispatcher(auth, store, rotator, pipeline, backend):
    return MessageDispatcher(
        auth=auth,
        store=store,
        rotator=rotator,
        pipeline=pipeline,
        backend=backend,
        typing_interval=0,
        chunk_delay=0,
    )


@pytest.fixture
def member_role():
    return MemberRole(id="42", name=REQUIRED_ROLE)
