"""Countdown-then-capture state machine for evidence photos.

    idle --start()--> counting_down(n) --tick() x n--> (capture) --> captured
                          |
                          +--cancel()--> cancelled

`run()` drives the ticks from a cancelable asyncio task; the snapshot callable
is only invoked once the count reaches zero.
"""

from __future__ import annotations

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from apar_admission.config import Settings
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="capture")

Snapshot = Callable[[], Union[Any, Awaitable[Any]]]


class CaptureState(str, Enum):
    """Countdown lifecycle."""
    IDLE = "idle"
    COUNTING_DOWN = "counting_down"
    CAPTURED = "captured"
    CANCELLED = "cancelled"


class CaptureCountdown:
    """Explicit countdown FSM with a cancelable timer."""

    def __init__(self, seconds: int = 3, interval: float = 1.0) -> None:
        if seconds < 0:
            raise ValueError("Countdown seconds must be >= 0")
        self.seconds = seconds
        self.interval = interval
        self.state = CaptureState.IDLE
        self.remaining = 0
        self.result: Any = None
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings: Settings, interval: float = 1.0) -> "CaptureCountdown":
        return cls(seconds=settings.capture_countdown_seconds, interval=interval)

    def start(self) -> None:
        """Enter counting_down(n); restarting a running countdown is an error."""
        if self.state == CaptureState.COUNTING_DOWN:
            raise RuntimeError("Countdown already running")
        self.state = CaptureState.COUNTING_DOWN
        self.remaining = self.seconds
        self.result = None

    def tick(self) -> bool:
        """Advance one step; returns True once the capture is due."""
        if self.state != CaptureState.COUNTING_DOWN:
            raise RuntimeError(f"Cannot tick while {self.state.value}")
        if self.remaining > 0:
            self.remaining -= 1
        return self.remaining == 0

    def mark_captured(self, result: Any) -> None:
        if self.state != CaptureState.COUNTING_DOWN or self.remaining != 0:
            raise RuntimeError("Capture is only allowed when the countdown reaches zero")
        self.state = CaptureState.CAPTURED
        self.result = result

    def cancel(self) -> None:
        """Abort a running countdown; no-op otherwise."""
        if self.state != CaptureState.COUNTING_DOWN:
            return
        self.state = CaptureState.CANCELLED
        self.remaining = 0
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def reset(self) -> None:
        """Return to idle after a capture or a cancel."""
        if self.state == CaptureState.COUNTING_DOWN:
            raise RuntimeError("Cancel the running countdown before resetting")
        self.state = CaptureState.IDLE
        self.remaining = 0
        self.result = None

    async def run(self, snapshot: Snapshot) -> Any:
        """Count down, then call `snapshot` and return its result.

        Raises asyncio.CancelledError if cancel() is called mid-countdown.
        """
        self.start()
        self._task = asyncio.current_task()
        try:
            while self.remaining > 0:
                await asyncio.sleep(self.interval)
                self.tick()
        except asyncio.CancelledError:
            self.state = CaptureState.CANCELLED
            self.remaining = 0
            logger.debug("Capture countdown cancelled")
            raise
        finally:
            self._task = None

        result = snapshot()
        if inspect.isawaitable(result):
            result = await result
        self.mark_captured(result)
        return result
