"""In-memory submission lock with TTL, for a single process and for tests."""

import threading
import time

from apar_admission.submission_store.base import SubmissionStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="submission_store/in_memory")


class InMemorySubmissionStore(SubmissionStore):
    """Thread-safe, TTL-aware claim table."""

    def __init__(self, ttl_seconds: int = 120) -> None:
        """Initialize the store; a claim lapses after `ttl_seconds`."""
        logger.debug("Initializing InMemorySubmissionStore")
        self.ttl = ttl_seconds
        self._claims: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> tuple[str, float] | None:
        """Return the claim for `key`, evicting it if expired. Caller holds the lock."""
        claim = self._claims.get(key)
        if claim is None:
            return None
        if claim[1] < time.monotonic():
            self._claims.pop(key, None)
            return None
        return claim

    def try_acquire(self, key: str, token: str) -> bool:
        """Claim `key` unless a live claim already exists."""
        with self._lock:
            if self._live(key) is not None:
                return False
            self._claims[key] = (token, time.monotonic() + self.ttl)
            return True

    def release(self, key: str, token: str) -> None:
        """Release `key` only if `token` owns the claim."""
        with self._lock:
            claim = self._live(key)
            if claim is not None and claim[0] == token:
                self._claims.pop(key, None)

    def is_held(self, key: str) -> bool:
        """Return True while a live claim exists."""
        with self._lock:
            return self._live(key) is not None

    def clear(self) -> None:
        """Drop every claim."""
        with self._lock:
            self._claims.clear()
