"""Shared protocol for submission lock backends."""

from typing import Protocol


class SubmissionStore(Protocol):
    """Protocol for in-flight submission lock backends."""

    def try_acquire(self, key: str, token: str) -> bool:
        """Claim `key` for `token`; False if another submission holds it."""

    def release(self, key: str, token: str) -> None:
        """Release `key` if `token` still holds it."""

    def is_held(self, key: str) -> bool:
        """Return True while a live claim exists for `key`."""

    def clear(self) -> None:
        """Drop every claim."""
