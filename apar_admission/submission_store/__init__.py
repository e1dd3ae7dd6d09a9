"""Backends for the in-flight submission lock."""

from .base import SubmissionStore
from .memory import InMemorySubmissionStore
from .redis import RedisSubmissionStore

__all__ = [
    "SubmissionStore",
    "InMemorySubmissionStore",
    "RedisSubmissionStore",
]
