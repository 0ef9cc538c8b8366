"""
Per-message orchestration: authorize, route, invoke the AI backend, chunk and
deliver. Every inbound message ends in exactly one terminal state, and every
state except Ignored leaves the sender with a reply.
"""
from __future__ import annotations

import asyncio
import contextlib
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from .auth import AuthorizationEngine
from .command_parser import DEFAULT_HISTORY_COMMAND, parse_command
from .credentials import CredentialRotator
from .exceptions import (
    AuthorizationDenied,
    BackendError,
    BotBaseException,
    DeliveryError,
    FileProcessingError,
)
from .media_ingestion import AttachmentIngestionPipeline
from .memory.context_manager import ConversationContextStore
from .response_chunker import DEFAULT_MAX_CHUNK_LENGTH, chunk
from .types import Attachment, ChannelKind, Command, InboundMessage
from .utils.logging import get_logger

logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = BotBaseException.user_message
DEFAULT_IMAGE_PROMPT = "Describe this image."


class DispatchState(Enum):
    RECEIVED = "received"
    AUTHORIZING = "authorizing"
    ROUTING = "routing"
    TEXT_PATH = "text_path"
    ATTACHMENT_PATH = "attachment_path"
    INVOKING = "invoking"
    CHUNKING = "chunking"
    DELIVERING = "delivering"
    # terminal
    IGNORED = "ignored"
    DENIED = "denied"
    REJECTED = "rejected"
    DONE = "done"
    FAILED = "failed"


class ReplyChannel(ABC):
    """Outbound side of the chat platform for one inbound message."""

    @abstractmethod
    async def reply(self, text: str) -> None:
        """Send ``text`` as a reply to the inbound message."""

    @abstractmethod
    async def typing(self) -> None:
        """Show the typing indicator once. Best effort."""


class MessageDispatcher:
    def __init__(
        self,
        auth: AuthorizationEngine,
        store: ConversationContextStore,
        rotator: CredentialRotator,
        pipeline: AttachmentIngestionPipeline,
        backend: Any,
        *,
        max_chunk_length: int = DEFAULT_MAX_CHUNK_LENGTH,
        typing_interval: float = 5.0,
        chunk_delay: float = 0.5,
        history_command: str = DEFAULT_HISTORY_COMMAND,
        default_image_prompt: str = DEFAULT_IMAGE_PROMPT,
        rotate_on_rate_limit: bool = False,
    ):
        self.auth = auth
        self.store = store
        self.rotator = rotator
        self.pipeline = pipeline
        self.backend = backend
        self.max_chunk_length = max_chunk_length
        self.typing_interval = typing_interval
        self.chunk_delay = chunk_delay
        self.history_command = history_command
        self.default_image_prompt = default_image_prompt
        self.rotate_on_rate_limit = rotate_on_rate_limit

    @classmethod
    def from_config(cls, config: dict, backend: Any = None) -> "MessageDispatcher":
        from .ai_backend import GeminiBackend

        rotator = CredentialRotator(config["GEMINI_API_KEYS"], config["API_CALL_THRESHOLD"])
        return cls(
            auth=AuthorizationEngine.from_config(config),
            store=ConversationContextStore(config["MAX_HISTORY"]),
            rotator=rotator,
            pipeline=AttachmentIngestionPipeline.from_config(config),
            backend=backend or GeminiBackend.from_config(config, rotator),
            max_chunk_length=config["MAX_CHUNK_LENGTH"],
            typing_interval=config["TYPING_INTERVAL_SECONDS"],
            chunk_delay=config["CHUNK_DELAY_SECONDS"],
            history_command=config["HISTORY_COMMAND"],
            default_image_prompt=config["DEFAULT_IMAGE_PROMPT"],
            rotate_on_rate_limit=config["ROTATE_ON_RATE_LIMIT"],
        )

    async def handle(self, message: InboundMessage, channel: ReplyChannel) -> DispatchState:
        """Process one inbound message to completion and return its terminal state."""
        extra = {
            "subsys": "dispatch",
            "channel_id": message.channel_id,
            "user_id": message.author_id,
            "msg_id": message.message_id,
        }
        state = DispatchState.RECEIVED
        try:
            if message.author_is_bot:
                return DispatchState.IGNORED
            if message.channel_kind is not ChannelKind.DM and not message.addressed:
                return DispatchState.IGNORED

            state = DispatchState.AUTHORIZING
            try:
                self.auth.authorize(
                    message.author_id, message.channel_kind, message.channel_id, message.roles
                )
            except AuthorizationDenied as e:
                logger.info(
                    f"Denied {message.author_id} in {message.channel_id}: {e.reason.name}",
                    extra={**extra, "event": "auth.deny"},
                )
                await self._send(channel, e.user_message)
                return DispatchState.DENIED

            state = DispatchState.ROUTING
            parsed = parse_command(message.content, self.history_command)
            if parsed is not None and parsed.command is Command.HISTORY:
                await self._send(channel, self.store.format_summary(message.key))
                return DispatchState.DONE

            attachment = self._route_attachment(message)
            if attachment is not None:
                state = DispatchState.ATTACHMENT_PATH
                prompt = parsed.cleaned_content if parsed else self.default_image_prompt
                try:
                    async with self.pipeline.ingest(attachment) as payload:
                        state = DispatchState.INVOKING
                        reply = await self._invoke(
                            channel,
                            lambda index: self.backend.generate_from_image(prompt, payload, index),
                        )
                except FileProcessingError as e:
                    logger.info(
                        f"Attachment rejected: {e}",
                        extra={**extra, "event": "attachment.reject"},
                    )
                    await self._send(channel, e.user_message)
                    return DispatchState.REJECTED
            elif parsed is not None:
                state = DispatchState.TEXT_PATH
                prompt = parsed.cleaned_content
                window = await self.store.append(message.key, "user", prompt)
                state = DispatchState.INVOKING
                reply = await self._invoke(
                    channel,
                    lambda index: self.backend.generate_text(prompt, window[:-1], index),
                )
                await self.store.append(message.key, "assistant", reply)
            else:
                return DispatchState.IGNORED

            state = DispatchState.CHUNKING
            chunks = chunk(reply, self.max_chunk_length)

            state = DispatchState.DELIVERING
            for index, part in enumerate(chunks):
                if index and self.chunk_delay > 0:
                    await asyncio.sleep(self.chunk_delay)
                await self._send(channel, part)

            logger.info(
                f"Replied with {len(chunks)} chunk(s)",
                extra={**extra, "event": "dispatch.done"},
            )
            return DispatchState.DONE

        except BotBaseException as e:
            await self._fail(channel, state, e, e.user_message, extra)
            return DispatchState.FAILED
        except Exception as e:
            await self._fail(channel, state, e, GENERIC_ERROR_MESSAGE, extra)
            return DispatchState.FAILED

    def _route_attachment(self, message: InboundMessage) -> Optional[Attachment]:
        """Pick the attachment to ingest, if the message takes the attachment path."""
        if not message.attachments:
            return None
        first = message.attachments[0]
        content_type = (first.content_type or "").lower()
        if content_type.startswith("image/") or not message.content.strip():
            return first
        return None

    async def _invoke(
        self, channel: ReplyChannel, call: Callable[[int], Awaitable[str]]
    ) -> str:
        index, _ = self.rotator.acquire()
        async with self._typing(channel):
            try:
                return await call(index)
            except BackendError as e:
                if e.rate_limited and self.rotate_on_rate_limit:
                    self.rotator.advance("rate_limited")
                raise

    @contextlib.asynccontextmanager
    async def _typing(self, channel: ReplyChannel):
        await self._typing_once(channel)
        task = None
        if self.typing_interval > 0:
            task = asyncio.create_task(self._keep_typing(channel))
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def _keep_typing(self, channel: ReplyChannel) -> None:
        while True:
            await asyncio.sleep(self.typing_interval)
            await self._typing_once(channel)

    async def _typing_once(self, channel: ReplyChannel) -> None:
        try:
            await channel.typing()
        except Exception as e:
            logger.debug(f"typing indicator failed: {e}")

    async def _send(self, channel: ReplyChannel, text: str) -> None:
        try:
            await channel.reply(text)
        except Exception as e:
            raise DeliveryError(f"Reply failed: {type(e).__name__}: {e}") from e

    async def _fail(
        self,
        channel: ReplyChannel,
        state: DispatchState,
        error: BaseException,
        user_message: str,
        extra: Dict[str, Any],
    ) -> None:
        logger.error(
            f"Message processing failed in state {state.value}: {error}",
            exc_info=error,
            extra={**extra, "event": "dispatch.failed"},
        )
        try:
            await channel.reply(user_message)
        except Exception as e:
            logger.error(
                f"Could not deliver error reply: {e}",
                extra={**extra, "event": "delivery.failed"},
            )
