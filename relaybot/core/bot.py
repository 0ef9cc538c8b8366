"""Discord client that feeds inbound messages to the dispatcher."""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

import discord

from relaybot.core.discord_adapter import DiscordChannel, to_inbound
from relaybot.dispatch import MessageDispatcher
from relaybot.types import ChannelKind
from relaybot.utils.logging import get_logger

# Idle time after which a user's queue processor exits.
USER_QUEUE_IDLE_SECONDS = 300


class RelayBot(discord.Client):
    """Relays messages between Discord and the AI backend."""

    def __init__(
        self,
        *args,
        config: dict | None = None,
        dispatcher: Optional[MessageDispatcher] = None,
        **kwargs,
    ):
        if "intents" not in kwargs:
            from relaybot.core.startup import create_bot_intents

            kwargs["intents"] = create_bot_intents()
        super().__init__(*args, **kwargs)
        self.config = config or {}
        self.logger = get_logger(__name__)
        self.dispatcher = dispatcher
        self._is_ready = asyncio.Event()
        self._user_queues: Dict[str, asyncio.Queue] = {}
        self._user_processors: Dict[str, asyncio.Task] = {}

    async def setup_hook(self) -> None:
        if self.dispatcher is None:
            self.dispatcher = MessageDispatcher.from_config(self.config)
        self.logger.info(
            f"🔧 Dispatcher ready: {self.dispatcher.rotator.pool_size} API key(s), "
            f"history cap {self.dispatcher.store.max_history}"
        )

    async def on_ready(self):
        if not self._is_ready.is_set():
            self.logger.info(f"🤖 Logged in as {self.user} (ID: {self.user.id})")
            self._is_ready.set()

    async def on_message(self, message: discord.Message):
        if message.author.bot or message.author == self.user:
            return

        inbound = to_inbound(message, self.user)
        if inbound.channel_kind is not ChannelKind.DM and not inbound.addressed:
            return

        user_id = inbound.author_id
        queue = self._get_user_queue(user_id)
        await queue.put(message)
        self._ensure_user_processor(user_id)
        self.logger.debug(
            f"Message queued: msg_id:{message.id} author:{user_id} queue_size:{queue.qsize()}"
        )

    def _get_user_queue(self, user_id: str) -> asyncio.Queue:
        if user_id not in self._user_queues:
            self._user_queues[user_id] = asyncio.Queue()
        return self._user_queues[user_id]

    def _ensure_user_processor(self, user_id: str) -> None:
        task = self._user_processors.get(user_id)
        if task is None or task.done():
            self._user_processors[user_id] = asyncio.create_task(
                self._process_user_messages(user_id)
            )

    async def _process_user_messages(self, user_id: str):
        """Process one user's messages in arrival order."""
        queue = self._get_user_queue(user_id)
        try:
            while True:
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=USER_QUEUE_IDLE_SECONDS)
                except asyncio.TimeoutError:
                    break
                try:
                    await self.process_message(message)
                except Exception as e:
                    self.logger.error(
                        f"Error processing message {message.id} for user {user_id}: {e}",
                        exc_info=True,
                    )
                finally:
                    queue.task_done()
        finally:
            if self._user_processors.get(user_id) is asyncio.current_task():
                del self._user_processors[user_id]
                if not queue.empty():
                    self._ensure_user_processor(user_id)
            self.logger.debug(f"Message processor for user {user_id} stopped")

    async def process_message(self, message: discord.Message):
        inbound = to_inbound(message, self.user)
        state = await self.dispatcher.handle(inbound, DiscordChannel(message))
        self.logger.debug(f"msg_id:{message.id} finished in state {state.value}")
        return state
