"""Device position acquisition policy and reading freshness.

The positioning source itself (browser geolocation, GPS daemon, test double)
is plugged in as a PositionProvider. The tracker applies the acquisition
policy: prefer high accuracy, give up after the timeout, and never reuse a
reading older than the maximum cached age.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from apar_admission.config import Settings
from apar_admission.domain import LocationReading, LocationState
from apar_admission.errors import LocationStale, LocationUnavailable
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="positioning")


@dataclass(frozen=True)
class PositionPolicy:
    """How a position may be acquired and how long it stays usable."""
    high_accuracy: bool = True
    timeout_seconds: float = 10.0
    max_age_seconds: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PositionPolicy":
        return cls(
            high_accuracy=settings.position_high_accuracy,
            timeout_seconds=settings.position_timeout_seconds,
            max_age_seconds=settings.position_max_age_seconds,
        )


class PositionProvider(Protocol):
    """Anything that can produce a location reading."""

    async def get_position(self, *, high_accuracy: bool) -> LocationReading:
        """Return a reading or raise if the position cannot be determined."""
        ...


def reading_age_seconds(reading: LocationReading, now: datetime) -> float:
    """Age of a reading at `now`; readings stamped in the future count as age 0."""
    captured = reading.captured_at
    if (captured.tzinfo is None) != (now.tzinfo is None):
        captured = captured.replace(tzinfo=None)
        now = now.replace(tzinfo=None)
    return max(0.0, (now - captured).total_seconds())


def classify_reading(
    reading: Optional[LocationReading],
    now: datetime,
    policy: PositionPolicy,
) -> LocationState:
    """Map a (possibly missing) reading to unavailable / stale / fresh."""
    if reading is None:
        return LocationState.UNAVAILABLE
    if reading_age_seconds(reading, now) > policy.max_age_seconds:
        return LocationState.STALE
    return LocationState.FRESH


class PositionTracker:
    """Caches the last good reading and re-acquires once it goes stale."""

    def __init__(
        self,
        provider: PositionProvider,
        policy: PositionPolicy | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.provider = provider
        self.policy = policy or PositionPolicy()
        self._clock = clock
        self._last: Optional[LocationReading] = None

    @property
    def last_reading(self) -> Optional[LocationReading]:
        return self._last

    def state(self) -> LocationState:
        """Freshness of the cached reading right now."""
        return self.freshness(self._last)

    def freshness(self, reading: Optional[LocationReading]) -> LocationState:
        """Classify any reading against this tracker's clock and policy."""
        return classify_reading(reading, self._clock(), self.policy)

    def invalidate(self) -> None:
        """Forget the cached reading so the next call acquires anew."""
        self._last = None

    async def current(self) -> LocationReading:
        """Return a fresh reading, acquiring one if the cache is empty or stale.

        Raises LocationUnavailable when acquisition fails or times out, and
        LocationStale when the source hands back a reading already past the
        maximum age.
        """
        if self.state() == LocationState.FRESH:
            return self._last  # type: ignore[return-value]

        reading = await self._acquire()
        age = reading_age_seconds(reading, self._clock())
        if age > self.policy.max_age_seconds:
            logger.warning("Discarding stale reading (%.1fs old)", age)
            raise LocationStale(age, self.policy.max_age_seconds)

        self._last = reading
        return reading

    async def _acquire(self) -> LocationReading:
        logger.debug(
            "Acquiring position (high_accuracy=%s, timeout=%.1fs)",
            self.policy.high_accuracy,
            self.policy.timeout_seconds,
        )
        try:
            return await asyncio.wait_for(
                self.provider.get_position(high_accuracy=self.policy.high_accuracy),
                timeout=self.policy.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Position acquisition timed out after %.1fs", self.policy.timeout_seconds)
            raise LocationUnavailable(
                f"Position not available within {self.policy.timeout_seconds:.0f}s"
            ) from exc
        except LocationUnavailable:
            raise
        except Exception as exc:
            logger.warning("Position provider failed: %s", exc)
            raise LocationUnavailable(str(exc) or "Position unavailable") from exc
