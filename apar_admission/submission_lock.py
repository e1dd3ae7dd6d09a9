"""Duplicate-submit protection facade over pluggable lock backends."""
import uuid
from contextlib import contextmanager
from typing import Iterator

import redis

from apar_admission.config import settings
from apar_admission.errors import DuplicateSubmission
from apar_admission.submission_store import InMemorySubmissionStore, RedisSubmissionStore, SubmissionStore
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="submission_lock")


def _init_store() -> SubmissionStore:
    """Initialize the backing lock store based on configuration."""
    ttl = settings.submission_lock_ttl_seconds
    if settings.submission_redis_url:
        masked = mask_url(settings.submission_redis_url)
        try:
            client = redis.Redis.from_url(settings.submission_redis_url)
            client.ping()
            logger.info("Using RedisSubmissionStore", extra={"redis_url": masked})
            return RedisSubmissionStore(client, ttl_seconds=ttl)
        except redis.RedisError as exc:
            logger.warning(
                "Falling back to InMemorySubmissionStore (Redis unavailable at %s): %s", masked, exc
            )
    return InMemorySubmissionStore(ttl_seconds=ttl)


_store: SubmissionStore = _init_store()


def use_in_memory_store_for_tests(ttl_seconds: int = 120) -> None:
    """Override store for tests to ensure isolation and determinism."""
    global _store
    _store = InMemorySubmissionStore(ttl_seconds=ttl_seconds)


def try_acquire(key: str) -> str | None:
    """Claim `key` and return the ownership token, or None if already in flight."""
    token = uuid.uuid4().hex
    if _store.try_acquire(key, token):
        return token
    logger.info("Rejected duplicate submission for %s", key)
    return None


def release(key: str, token: str) -> None:
    """Release a claim obtained from try_acquire()."""
    _store.release(key, token)


def is_in_flight(key: str) -> bool:
    """Return True while a submission for `key` is in progress."""
    return _store.is_held(key)


@contextmanager
def in_flight(key: str) -> Iterator[str]:
    """Hold the claim for `key` for the duration of the block.

    Raises DuplicateSubmission if another submission already holds it.
    """
    token = try_acquire(key)
    if token is None:
        raise DuplicateSubmission(key)
    try:
        yield token
    finally:
        release(key, token)


def clear_locks() -> None:
    """Clear all claims from the backing store (dev/testing)."""
    _store.clear()
