"""Slot engine tests - pure functions, no database"""

from collections import Counter
from datetime import date, datetime

from bakehouse.domain.availability.engine import (
    BLACKOUT,
    CLOSED,
    LEAD_TIME,
    CalendarRules,
    Commitments,
    OverrideRule,
    ServiceSpec,
    Window,
    closed_reason,
    compute_slots,
    slots_for_date,
)


def bakery(lead_time_days=0, capacity=2, step=30):
    return ServiceSpec(
        kind="cookies",
        lead_time_days=lead_time_days,
        duration_minutes=step,
        step_minutes=step,
        default_capacity=capacity,
        honors_blackouts=True,
        uses_pickup_hours=True,
        counts_by_overlap=False,
    )


def consulting(duration=60, buffer=0, max_per_day=None):
    return ServiceSpec(
        kind="booking:consult",
        lead_time_days=0,
        duration_minutes=duration,
        step_minutes=duration + buffer,
        default_capacity=1,
        honors_blackouts=False,
        uses_pickup_hours=False,
        counts_by_overlap=True,
        max_per_day=max_per_day,
    )


def weekday_windows(start=8 * 60, end=16 * 60):
    # Monday (1) through Friday (5)
    return {dow: [Window(start, end)] for dow in range(1, 6)}


TODAY = date(2026, 1, 1)
TUESDAY = date(2026, 1, 6)


class TestConsultingSlots:
    def test_existing_booking_removes_its_slot(self):
        rules = CalendarRules(weekly=weekday_windows())
        commitments = Commitments(
            intervals=[(datetime(2026, 1, 6, 10, 0), datetime(2026, 1, 6, 11, 0))],
            per_day=Counter({TUESDAY: 1}),
        )

        slots = slots_for_date(rules, consulting(), commitments, TUESDAY, TODAY)
        available = [s.time for s in slots if s.available]

        assert "10:00" not in available
        assert available == ["08:00", "09:00", "11:00", "12:00", "13:00", "14:00", "15:00"]

    def test_buffer_widens_the_step(self):
        rules = CalendarRules(weekly=weekday_windows(start=9 * 60, end=12 * 60))
        slots = slots_for_date(rules, consulting(duration=60, buffer=30), Commitments(), TUESDAY, TODAY)
        assert [s.time for s in slots] == ["09:00", "10:30"]

    def test_daily_maximum_fills_the_whole_day(self):
        rules = CalendarRules(weekly=weekday_windows())
        commitments = Commitments(
            intervals=[(datetime(2026, 1, 6, 8, 0), datetime(2026, 1, 6, 9, 0))],
            per_day=Counter({TUESDAY: 1}),
        )
        slots = slots_for_date(rules, consulting(max_per_day=1), commitments, TUESDAY, TODAY)
        assert slots
        assert all(s.remaining == 0 and not s.available for s in slots)

    def test_weekend_is_closed_without_windows(self):
        rules = CalendarRules(weekly=weekday_windows())
        saturday = date(2026, 1, 10)
        assert slots_for_date(rules, consulting(), Commitments(), saturday, TODAY) == []

    def test_consulting_ignores_pickup_hours_and_blackouts(self):
        rules = CalendarRules(
            weekly=weekday_windows(),
            blackouts={TUESDAY},
            pickup_hours={2: Window(9 * 60, 12 * 60)},
        )
        slots = slots_for_date(rules, consulting(), Commitments(), TUESDAY, TODAY)
        assert slots[0].time == "08:00"


class TestBakerySlots:
    def test_lead_time_pushes_first_open_date(self):
        rules = CalendarRules(pickup_hours={dow: Window(9 * 60, 12 * 60) for dow in range(7)})
        result = compute_slots(
            rules, bakery(lead_time_days=7), Commitments(), TODAY, date(2026, 1, 15), TODAY
        )

        first_open = min(d for d, slots in result.items() if slots)
        assert first_open == date(2026, 1, 8)
        assert all(result[d] == [] for d in result if d < date(2026, 1, 8))

    def test_every_date_in_range_is_present(self):
        rules = CalendarRules()
        result = compute_slots(rules, bakery(), Commitments(), TODAY, date(2026, 1, 5), TODAY)
        assert list(result) == [date(2026, 1, d) for d in range(1, 6)]

    def test_blackout_yields_empty_list(self):
        rules = CalendarRules(
            pickup_hours={dow: Window(9 * 60, 12 * 60) for dow in range(7)},
            blackouts={TUESDAY},
        )
        assert slots_for_date(rules, bakery(), Commitments(), TUESDAY, TODAY) == []
        assert closed_reason(rules, bakery(), TUESDAY, TODAY) == BLACKOUT

    def test_blackout_wins_over_an_open_override(self):
        rules = CalendarRules(
            overrides={TUESDAY: OverrideRule(is_available=True, window=Window(8 * 60, 9 * 60))},
            blackouts={TUESDAY},
        )
        assert slots_for_date(rules, bakery(), Commitments(), TUESDAY, TODAY) == []

    def test_closed_reasons_in_order(self):
        rules = CalendarRules(weekly=weekday_windows())
        assert closed_reason(rules, bakery(lead_time_days=14), TUESDAY, TODAY) == LEAD_TIME
        assert closed_reason(rules, bakery(), date(2026, 1, 11), TODAY) == CLOSED
        assert closed_reason(rules, bakery(), TUESDAY, TODAY) is None

    def test_weekly_windows_replace_pickup_hours(self):
        rules = CalendarRules(
            weekly={2: [Window(13 * 60, 14 * 60)]},
            pickup_hours={dow: Window(9 * 60, 12 * 60) for dow in range(7)},
        )
        slots = slots_for_date(rules, bakery(step=30), Commitments(), TUESDAY, TODAY)
        assert [s.time for s in slots] == ["13:00", "13:30"]
        # Monday has no weekly row, so it is closed even though pickup hours exist
        assert slots_for_date(rules, bakery(), Commitments(), date(2026, 1, 5), TODAY) == []

    def test_closed_override(self):
        rules = CalendarRules(
            weekly=weekday_windows(),
            overrides={TUESDAY: OverrideRule(is_available=False)},
        )
        assert slots_for_date(rules, bakery(), Commitments(), TUESDAY, TODAY) == []

    def test_override_window_replaces_weekly(self):
        rules = CalendarRules(
            weekly=weekday_windows(),
            overrides={TUESDAY: OverrideRule(is_available=True, window=Window(10 * 60, 11 * 60))},
        )
        slots = slots_for_date(rules, bakery(), Commitments(), TUESDAY, TODAY)
        assert [s.time for s in slots] == ["10:00", "10:30"]

    def test_capacity_override_and_available_matches_remaining(self):
        rules = CalendarRules(
            weekly={2: [Window(9 * 60, 10 * 60)]},
            capacities={(TUESDAY, "09:00"): 1, (TUESDAY, "09:30"): 5},
        )
        commitments = Commitments(exact=Counter({(TUESDAY, "09:00"): 1, (TUESDAY, "09:30"): 2}))

        slots = {s.time: s for s in slots_for_date(rules, bakery(), commitments, TUESDAY, TODAY)}

        assert slots["09:00"].remaining == 0
        assert slots["09:00"].available is False
        assert slots["09:30"].remaining == 3
        assert slots["09:30"].available is True
        for slot in slots.values():
            assert slot.available == (slot.remaining > 0)

    def test_overbooked_slot_reports_negative_remaining(self):
        rules = CalendarRules(weekly={2: [Window(9 * 60, 9 * 60 + 30)]})
        commitments = Commitments(exact=Counter({(TUESDAY, "09:00"): 3}))
        (slot,) = slots_for_date(rules, bakery(capacity=2), commitments, TUESDAY, TODAY)
        assert slot.remaining == -1
        assert slot.available is False
