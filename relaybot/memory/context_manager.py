import asyncio
from collections import deque
from typing import Deque, Dict, List, Tuple

from ..types import ConversationKey, Role, Turn
from ..utils.logging import get_logger

logger = get_logger(__name__)

SUMMARY_PREVIEW_CHARS = 100


class ConversationContextStore:
    """
    Keeps a bounded, in-memory window of recent turns per (channel, user).

    Windows are created on first append and live for the process lifetime.
    Mutations on one key are serialized by that key's lock; other keys are
    never blocked.
    """

    def __init__(self, max_history: int = 5):
        """
        Args:
            max_history (int): Maximum number of turns kept per conversation.
        """
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.max_history = max_history
        self._windows: Dict[ConversationKey, Deque[Turn]] = {}
        self._locks: Dict[ConversationKey, asyncio.Lock] = {}
        logger.info(f"ConversationContextStore initialized. Max history: {self.max_history}")

    def _lock_for(self, key: ConversationKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks.setdefault(key, asyncio.Lock())
        return lock

    async def append(self, key: ConversationKey, role: str, text: str) -> List[Turn]:
        """Append a turn and return the window as it stands after the append."""
        turn = Turn(role=Role.from_logical(role), text=text)
        async with self._lock_for(key):
            window = self._windows.get(key)
            if window is None:
                window = self._windows[key] = deque(maxlen=self.max_history)
            window.append(turn)
            snapshot = list(window)

        logger.debug(
            f"History append {key}: role={turn.role.value} len={len(snapshot)}",
            extra={"subsys": "context", "event": "context.append"},
        )
        return snapshot

    def get(self, key: ConversationKey) -> List[Turn]:
        return list(self._windows.get(key, ()))

    async def clear(self, key: ConversationKey) -> None:
        async with self._lock_for(key):
            self._windows.pop(key, None)

    def format_summary(self, key: ConversationKey) -> str:
        """Render the window for the history command."""
        window = self.get(key)
        if not window:
            return "No message history found."

        lines = []
        for index, turn in enumerate(window, 1):
            preview = turn.text[:SUMMARY_PREVIEW_CHARS]
            if len(turn.text) > SUMMARY_PREVIEW_CHARS:
                preview += "..."
            lines.append(f"{index}. {turn.role.value}: {preview}")

        return f"**Last {len(window)} messages:**\n" + "\n".join(lines)

    def keys(self) -> Tuple[ConversationKey, ...]:
        return tuple(self._windows)

    def __len__(self) -> int:
        return len(self._windows)
