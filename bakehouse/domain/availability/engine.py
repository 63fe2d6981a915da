"""
Slot computation

Pure functions: callers load calendar rules, tenant config and commitment counts from
the store and pass them in, so the whole algorithm is testable without a database.

Each date in the requested range is resolved in a fixed order, and the first rule that
closes a date wins:

1. lead time (``date < today + lead_time_days``)
2. blackout dates (bakery services only)
3. the day's window: a date override, then the weekly windows for that weekday, then
   (bakery only, when no weekly windows are configured) the tenant's pickup hours
4. candidate starts stepped through the window, each scored against capacity
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from ...time_utils import day_of_week, from_minutes

LEAD_TIME = "lead_time"
BLACKOUT = "blackout"
CLOSED = "closed"


@dataclass(frozen=True)
class Window:
    start: int  # minutes since midnight
    end: int


@dataclass(frozen=True)
class OverrideRule:
    is_available: bool
    window: Optional[Window] = None


@dataclass
class CalendarRules:
    weekly: dict[int, list[Window]] = field(default_factory=dict)
    overrides: dict[date, OverrideRule] = field(default_factory=dict)
    blackouts: set[date] = field(default_factory=set)
    capacities: dict[tuple[date, str], int] = field(default_factory=dict)
    pickup_hours: dict[int, Window] = field(default_factory=dict)


@dataclass(frozen=True)
class ServiceSpec:
    """How one kind of service consumes the calendar"""

    kind: str
    lead_time_days: int
    duration_minutes: int
    step_minutes: int
    default_capacity: int
    honors_blackouts: bool
    uses_pickup_hours: bool
    counts_by_overlap: bool
    max_per_day: Optional[int] = None


@dataclass
class Commitments:
    exact: Counter = field(default_factory=Counter)  # (date, "HH:MM") -> count
    intervals: list[tuple[datetime, datetime]] = field(default_factory=list)
    per_day: Counter = field(default_factory=Counter)  # date -> count


@dataclass(frozen=True)
class Slot:
    time: str
    available: bool
    remaining: int


def min_date(service: ServiceSpec, today: date) -> date:
    return today + timedelta(days=service.lead_time_days)


def resolve_windows(rules: CalendarRules, service: ServiceSpec, d: date) -> list[Window]:
    override = rules.overrides.get(d)
    if override is not None:
        if not override.is_available:
            return []
        if override.window is not None:
            return [override.window]

    if rules.weekly:
        return list(rules.weekly.get(day_of_week(d), []))

    if service.uses_pickup_hours:
        hours = rules.pickup_hours.get(day_of_week(d))
        return [hours] if hours else []

    return []


def closed_reason(
    rules: CalendarRules, service: ServiceSpec, d: date, today: date
) -> Optional[str]:
    """Why ``d`` offers nothing, or None when the date has an open window"""
    if d < min_date(service, today):
        return LEAD_TIME
    if service.honors_blackouts and d in rules.blackouts:
        return BLACKOUT
    if not resolve_windows(rules, service, d):
        return CLOSED
    return None


def candidate_starts(window: Window, service: ServiceSpec) -> list[int]:
    step = max(service.step_minutes, 1)
    starts = []
    current = window.start
    while current + service.duration_minutes <= window.end:
        starts.append(current)
        current += step
    return starts


def committed_count(
    service: ServiceSpec, commitments: Commitments, d: date, start_minutes: int
) -> int:
    if not service.counts_by_overlap:
        return commitments.exact.get((d, from_minutes(start_minutes)), 0)

    day_start = datetime(d.year, d.month, d.day)
    slot_start = day_start + timedelta(minutes=start_minutes)
    slot_end = slot_start + timedelta(minutes=service.duration_minutes)
    return sum(
        1
        for existing_start, existing_end in commitments.intervals
        if existing_start < slot_end and existing_end > slot_start
    )


def slots_for_date(
    rules: CalendarRules,
    service: ServiceSpec,
    commitments: Commitments,
    d: date,
    today: date,
) -> list[Slot]:
    if closed_reason(rules, service, d, today) is not None:
        return []

    day_full = (
        service.max_per_day is not None and commitments.per_day.get(d, 0) >= service.max_per_day
    )

    slots = []
    seen = set()
    for window in resolve_windows(rules, service, d):
        for start in candidate_starts(window, service):
            hhmm = from_minutes(start)
            if hhmm in seen:
                continue
            seen.add(hhmm)
            capacity = rules.capacities.get((d, hhmm), service.default_capacity)
            remaining = 0 if day_full else capacity - committed_count(service, commitments, d, start)
            slots.append(Slot(time=hhmm, available=remaining > 0, remaining=remaining))

    slots.sort(key=lambda s: s.time)
    return slots


def compute_slots(
    rules: CalendarRules,
    service: ServiceSpec,
    commitments: Commitments,
    start: date,
    end: date,
    today: date,
) -> dict[date, list[Slot]]:
    """Slots for every date in [start, end]; closed dates map to an empty list"""
    result: dict[date, list[Slot]] = {}
    current = start
    while current <= end:
        result[current] = slots_for_date(rules, service, commitments, current, today)
        current += timedelta(days=1)
    return result
