"""Partial-failure aggregation for bulk operations (delete N, notify N).

Every item is attempted independently and concurrently; one item failing
never stops the others and nothing already done is rolled back. The caller's
refresh hook runs exactly once, after the whole batch has settled.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="bulk")

T = TypeVar("T")

SettledHook = Callable[["BulkOperationResult"], Union[None, Awaitable[None]]]


@dataclass
class BulkOperationResult(Generic[T]):
    """Outcome of a bulk operation, split by item."""
    succeeded: List[T] = field(default_factory=list)
    failed: List[Tuple[T, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def summary(self, noun: str = "item") -> str:
        """Human-readable counts, e.g. '3 item(s) succeeded, 2 failed'."""
        if not self.succeeded and self.failed:
            return f"All {len(self.failed)} {noun}(s) failed"
        text = f"{len(self.succeeded)} {noun}(s) succeeded"
        if self.failed:
            text += f", {len(self.failed)} failed"
        return text


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


async def run_bulk(
    items: Iterable[T],
    action: Callable[[T], Awaitable[object]],
    *,
    on_settled: Optional[SettledHook] = None,
) -> BulkOperationResult[T]:
    """Run `action` for every item concurrently and aggregate the outcomes.

    `on_settled` (sync or async) is called once with the final result, never
    per item. Cancellation of the batch itself still propagates.
    """
    batch = list(items)

    async def attempt(item: T) -> Tuple[T, Optional[str]]:
        try:
            await action(item)
        except Exception as exc:
            logger.warning("Bulk item %r failed: %s", item, exc)
            return item, _error_message(exc)
        return item, None

    outcomes = await asyncio.gather(*(attempt(item) for item in batch))

    result: BulkOperationResult[T] = BulkOperationResult()
    for item, error in outcomes:
        if error is None:
            result.succeeded.append(item)
        else:
            result.failed.append((item, error))

    logger.info("Bulk operation settled: %d succeeded, %d failed", len(result.succeeded), len(result.failed))

    if on_settled is not None:
        settled = on_settled(result)
        if inspect.isawaitable(settled):
            await settled

    return result
