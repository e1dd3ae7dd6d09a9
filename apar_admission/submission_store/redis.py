"""Redis-backed submission lock, shared across API workers."""

from apar_admission.submission_store.base import SubmissionStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="submission_store/redis")


class RedisSubmissionStore(SubmissionStore):
    """Claims stored as `SET key token NX EX ttl`."""

    def __init__(self, client, ttl_seconds: int = 120, prefix: str = "submission:") -> None:
        """Initialize with a Redis client, claim TTL and key prefix."""
        logger.debug("Initializing RedisSubmissionStore")
        self.client = client
        self.ttl = ttl_seconds
        self.prefix = prefix

    def _key(self, key: str) -> str:
        """Return the Redis key for a claim."""
        return f"{self.prefix}{key}"

    @staticmethod
    def _decode(raw) -> str | None:
        if raw is None:
            return None
        return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)

    def try_acquire(self, key: str, token: str) -> bool:
        """Atomically claim `key`; Redis errors propagate to the caller."""
        acquired = self.client.set(self._key(key), token, nx=True, ex=self.ttl)
        return bool(acquired)

    def release(self, key: str, token: str) -> None:
        """Delete the claim if `token` still owns it."""
        redis_key = self._key(key)
        try:
            if self._decode(self.client.get(redis_key)) == token:
                self.client.delete(redis_key)
        except Exception as exc:  # pragma: no cover - TTL reclaims the key
            logger.error("Failed to release submission claim %s: %s", key, exc)

    def is_held(self, key: str) -> bool:
        """Return True while the claim key exists."""
        return self.client.get(self._key(key)) is not None

    def clear(self) -> None:
        """Best-effort clear of every claim under the prefix."""
        try:
            for redis_key in self.client.scan_iter(f"{self.prefix}*"):
                self.client.delete(redis_key)
        except Exception as exc:  # pragma: no cover
            logger.error("Failed to clear submission claims from Redis: %s", exc)
