"""
Round-robin rotation over a pool of AI-service credentials.

Each credential serves ``threshold`` calls before the pool advances to the
next one. This is a load spreader, not a quota tracker: per-call cost and the
backend's remaining quota are not inspected.
"""
import threading
from typing import List, Sequence, Tuple

from .exceptions import ConfigurationError
from .utils.logging import get_logger

logger = get_logger(__name__)


class CredentialRotator:
    def __init__(self, credentials: Sequence[str], threshold: int = 60):
        if not credentials:
            raise ConfigurationError("At least one API credential is required")
        if threshold < 1:
            raise ConfigurationError(f"Rotation threshold must be >= 1, got {threshold}")
        self._credentials: List[str] = list(credentials)
        self.threshold = threshold
        self._current_index = 0
        self._call_count = 0
        self._lock = threading.Lock()

    @property
    def pool_size(self) -> int:
        return len(self._credentials)

    @property
    def call_count(self) -> int:
        with self._lock:
            return self._call_count

    def current_index(self) -> int:
        with self._lock:
            return self._current_index

    def credential(self, index: int) -> str:
        return self._credentials[index]

    def record_call(self) -> None:
        with self._lock:
            self._record_call_locked()

    def acquire(self) -> Tuple[int, str]:
        """Pick the credential for the next request and count the call, atomically."""
        with self._lock:
            index = self._current_index
            self._record_call_locked()
            return index, self._credentials[index]

    def advance(self, reason: str = "manual") -> int:
        """Move to the next credential immediately. Returns the new index."""
        with self._lock:
            self._advance_locked(reason)
            return self._current_index

    def _record_call_locked(self) -> None:
        self._call_count += 1
        if self._call_count >= self.threshold:
            self._advance_locked("threshold")

    def _advance_locked(self, reason: str) -> None:
        previous = self._current_index
        self._current_index = (self._current_index + 1) % len(self._credentials)
        self._call_count = 0
        logger.info(
            f"Credential rotated {previous} -> {self._current_index} ({reason})",
            extra={"subsys": "credentials", "event": "credential.rotate"},
        )
