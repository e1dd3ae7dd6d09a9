"""Deterministic lifecycle classification for scheduled inspection visits.

`classify` maps a schedule and a reference instant to exactly one
ScheduleStatus. Rules are evaluated in a fixed order and the first match wins:

1. inactive schedules are INACTIVE, whatever their date;
2. scheduled today and start <= now <= end (both inclusive) -> TODAY_ONGOING;
3. scheduled today and now < start -> TODAY_NOT_STARTED;
4. start already passed, on any day -> OVERDUE;
5. otherwise -> UPCOMING.

The today-specific rules must run before the generic overdue rule: an ongoing
visit has a start instant in the past but is never overdue.

All comparisons use local wall-clock time with no timezone normalization. A
timezone-aware `now` is compared on its own wall-clock reading.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from apar_admission.domain import STATUS_PRESENTATION, Schedule, ScheduleStatus, StatusPresentation


# Display order for schedule lists: what needs attention first.
STATUS_RANK: Dict[ScheduleStatus, int] = {
    ScheduleStatus.TODAY_ONGOING: 0,
    ScheduleStatus.TODAY_NOT_STARTED: 1,
    ScheduleStatus.OVERDUE: 2,
    ScheduleStatus.UPCOMING: 3,
    ScheduleStatus.INACTIVE: 4,
}


@dataclass(frozen=True)
class ClassifiedSchedule:
    """A schedule paired with its status at one evaluation instant."""
    schedule: Schedule
    status: ScheduleStatus

    @property
    def presentation(self) -> StatusPresentation:
        """Icon/color/label for this entry."""
        return STATUS_PRESENTATION[self.status]


def _wall_clock(now: datetime) -> datetime:
    """Drop tzinfo so `now` compares against naive schedule instants."""
    return now.replace(tzinfo=None) if now.tzinfo is not None else now


def schedule_window(schedule: Schedule) -> Tuple[datetime, datetime]:
    """Return the (start, end) instants of a visit on its scheduled day."""
    start = datetime.combine(schedule.scheduled_date, schedule.start_time)
    end = datetime.combine(schedule.scheduled_date, schedule.end_time)
    return start, end


def classify(schedule: Schedule, now: datetime) -> ScheduleStatus:
    """Classify a schedule at `now`; see the module docstring for the rule order."""
    if not schedule.is_active:
        return ScheduleStatus.INACTIVE

    now = _wall_clock(now)
    start, end = schedule_window(schedule)
    is_today = schedule.scheduled_date == now.date()

    if is_today and start <= now <= end:
        return ScheduleStatus.TODAY_ONGOING
    if is_today and now < start:
        return ScheduleStatus.TODAY_NOT_STARTED
    if start < now:
        return ScheduleStatus.OVERDUE
    return ScheduleStatus.UPCOMING


def presentation(status: ScheduleStatus) -> StatusPresentation:
    """Look up the icon/color/label triple for a status."""
    return STATUS_PRESENTATION[status]


def order_schedules(schedules: Iterable[Schedule], now: datetime) -> List[ClassifiedSchedule]:
    """Classify every schedule once and order by status rank, then start instant."""
    classified = [ClassifiedSchedule(schedule=s, status=classify(s, now)) for s in schedules]
    return sorted(
        classified,
        key=lambda item: (STATUS_RANK[item.status], schedule_window(item.schedule)[0]),
    )


def select_ongoing(schedules: Iterable[Schedule], now: datetime) -> List[Schedule]:
    """Schedules currently in their visit window; the 'today' reminder audience."""
    return [s for s in schedules if classify(s, now) == ScheduleStatus.TODAY_ONGOING]


def select_active(schedules: Iterable[Schedule]) -> List[Schedule]:
    """Every active schedule; the 'all' reminder audience."""
    return [s for s in schedules if s.is_active]


def within_inspection_window(schedule: Schedule, now: datetime, grace: timedelta) -> bool:
    """True if `now` falls inside the visit window widened by `grace` on both sides."""
    now = _wall_clock(now)
    start, end = schedule_window(schedule)
    return start - grace <= now <= end + grace


def inspection_window_open(
    schedules: Iterable[Schedule],
    asset_id: int | str,
    now: datetime,
    grace: timedelta,
) -> Tuple[bool, Optional[Schedule]]:
    """Check an asset's next pending visit against the inspection window.

    Pending visits are active, not completed and not yet past `end + grace`;
    the earliest of them decides. Assets without a pending visit are always
    open. Returns the deciding schedule alongside the verdict so callers can
    report its window.
    """
    wall_now = _wall_clock(now)
    candidates = [
        s for s in schedules
        if s.is_active
        and not s.is_completed
        and s.asset_id == asset_id
        and schedule_window(s)[1] + grace >= wall_now
    ]
    if not candidates:
        return True, None
    earliest = min(candidates, key=lambda s: schedule_window(s)[0])
    return within_inspection_window(earliest, now, grace), earliest
