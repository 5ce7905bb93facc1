"""Unit tests for the pure calculation modules: no database, no HTTP."""

from datetime import date
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError

from gymcourt.models.reservation import Reservation, ReservationStatus
from gymcourt.schemas import format_phone_number
from gymcourt.services.booking_rules import (
    BookingViolation,
    check_contiguous_slots,
    check_status_transition,
    find_conflicts,
    selection_window,
)
from gymcourt.services.packages import apply_package, find_applicable_packages, package_applies
from gymcourt.services.pricing import (
    MODE_EVENT,
    MODE_RULES,
    PricingConfigurationError,
    apply_discount,
    best_rule,
    calculate_dynamic_price,
    event_price,
    event_rate,
    is_event,
    quote,
    round_price,
)
from gymcourt.services.reservations import is_double_booking
from gymcourt.services.recurrence import generate_dates, normalize_days, recurrence_rule
from gymcourt.services.schedule import PLACEHOLDER_TEXT, display_text, project
from gymcourt.services.selection import InvalidTransition, SelectionState, SlotSelection, replay_selection
from gymcourt.services.timeutil import (
    ValidationError,
    day_index,
    minutes_to_hhmm,
    normalize_start_time,
    normalize_time,
    span_minutes,
    time_to_minutes,
)

MONDAY = date(2025, 1, 6)
FRIDAY = date(2025, 1, 10)
ALL_DAYS = [0, 1, 2, 3, 4, 5, 6]
WEEKDAYS = [1, 2, 3, 4, 5]


def _rule(start="00:00:00", end="24:00:00", rate=60000, priority=0, days=None, court_id=None, name="rule"):
    return SimpleNamespace(
        name=name,
        court_id=court_id,
        days_of_week=ALL_DAYS if days is None else days,
        start_time=start,
        end_time=end,
        price_per_hour=rate,
        priority=priority,
    )


def _booking(id=1, court_id=1, day=MONDAY, start="10:00", end="12:00", status="confirmed", **overrides):
    defaults = dict(
        id=id,
        court_id=court_id,
        date=day,
        start_time=start,
        end_time=end,
        status=ReservationStatus(status),
        group_id=None,
        team_name=None,
        guest_name=None,
        color=None,
    )
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


STANDARD_RULES = [
    _rule(name="base"),
    _rule("18:00:00", "22:00:00", rate=100000, priority=10, days=WEEKDAYS, name="evening"),
]


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


class TestTimeUtil:
    def test_parses_seconds_and_end_of_day(self):
        assert time_to_minutes("10:30:00") == 630
        assert time_to_minutes("24:00") == 1440

    @pytest.mark.parametrize("value", ["25:00", "10:60", "ab", "1030", "24:30"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValidationError):
            time_to_minutes(value)

    def test_hhmm_wraps_past_midnight(self):
        assert minutes_to_hhmm(1500) == "01:00"
        assert minutes_to_hhmm(1440) == "24:00"
        assert normalize_time("9:00:00") == "09:00"

    def test_day_index_is_sunday_based(self):
        assert day_index(date(2025, 1, 5)) == 0
        assert day_index(MONDAY) == 1
        assert day_index(date(2025, 1, 11)) == 6

    def test_start_time_cannot_be_end_of_day(self):
        assert normalize_start_time("23:30") == "23:30"
        with pytest.raises(ValidationError) as exc_info:
            normalize_start_time("24:00")
        assert exc_info.value.field == "start_time"

    def test_span_crossing_midnight(self):
        assert span_minutes("23:00", "01:00") == (1380, 1500)
        assert span_minutes("10:00", "12:00") == (600, 720)

    def test_phone_formatting(self):
        assert format_phone_number("01012345678") == "010-1234-5678"
        assert format_phone_number("010 1234 5678") == "010-1234-5678"
        assert format_phone_number("0101234") == "010-1234"


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


class TestRuleResolution:
    def test_highest_priority_wins(self):
        assert best_rule(STANDARD_RULES, 1, 1, 19 * 60).name == "evening"
        assert best_rule(STANDARD_RULES, 1, 1, 17 * 60).name == "base"

    def test_tie_goes_to_first_rule(self):
        rules = [_rule(rate=70000, priority=5, name="first"), _rule(rate=90000, priority=5, name="second")]
        assert best_rule(rules, 1, 1, 600).name == "first"

    def test_court_specific_rule_only_applies_to_its_court(self):
        rules = [_rule(name="base"), _rule(rate=150000, priority=20, court_id=2, name="mint-only")]
        assert best_rule(rules, 1, 1, 600).name == "base"
        assert best_rule(rules, 2, 1, 600).name == "mint-only"

    def test_end_is_exclusive(self):
        rules = [_rule("09:00:00", "18:00:00")]
        assert best_rule(rules, 1, 1, 18 * 60) is None
        assert best_rule(rules, 1, 1, 9 * 60) is not None


class TestDynamicPrice:
    def test_sums_half_hour_slots_across_tiers(self):
        result = calculate_dynamic_price(MONDAY, "17:00", "19:00", 1, STANDARD_RULES)
        # 2 x 30,000 (base) + 2 x 50,000 (evening)
        assert result.total == 160000
        assert result.breakdown == []

    def test_weekend_gets_base_rate(self):
        result = calculate_dynamic_price(date(2025, 1, 11), "18:00", "20:00", 1, STANDARD_RULES)
        assert result.total == 120000

    def test_crossing_midnight_uses_next_weekday(self):
        rules = [_rule(name="base"), _rule("00:00:00", "06:00:00", rate=40000, priority=5, days=[6], name="sat-night")]
        result = calculate_dynamic_price(FRIDAY, "23:00", "01:00", 1, rules)
        # Friday 23:00-24:00 at 60,000/h, Saturday 00:00-01:00 at 40,000/h
        assert result.total == 100000

    def test_missing_rule_raises(self):
        with pytest.raises(PricingConfigurationError) as exc_info:
            calculate_dynamic_price(MONDAY, "08:00", "09:00", 1, [_rule("09:00:00", "18:00:00")])
        assert exc_info.value.minute == 480
        assert exc_info.value.day == 1

    def test_fallback_rate_fills_gaps(self):
        result = calculate_dynamic_price(MONDAY, "08:00", "10:00", 1, [_rule("09:00:00", "18:00:00")], 85000)
        assert result.total == 85000 + 60000
        assert len(result.breakdown) == 2


class TestEventPricing:
    @pytest.mark.parametrize(
        "people,rate",
        [(200, 400000), (250, 400000), (150, 300000), (100, 250000), (99, 200000), (50, 200000)],
    )
    def test_tiers(self, people, rate):
        assert event_rate(people, 200000) == rate

    def test_threshold(self):
        assert not is_event(49)
        assert is_event(50)

    def test_price_is_rate_times_hours(self):
        assert event_price(120, "10:00", "12:00", 200000) == 500000


class TestDiscountAndRounding:
    def test_discounts(self):
        assert apply_discount(100000, "daily") == 100000
        assert apply_discount(100000, "monthly") == 90000
        assert apply_discount(100000, "3month") == 80000

    def test_unknown_subscription(self):
        with pytest.raises(ValueError):
            apply_discount(100000, "weekly")

    def test_rounds_down_to_hundred(self):
        assert round_price(123456.7) == 123400
        assert round_price(99) == 0
        assert round_price(100) == 100


class TestQuote:
    court = SimpleNamespace(id=1, event_rate_per_hour=200000)

    def test_rules_mode_with_discount(self):
        q = quote(MONDAY, "18:00", "19:00", self.court, STANDARD_RULES, subscription_type="3month")
        assert q.mode == MODE_RULES
        assert q.base_total == 100000
        assert q.discount_percent == 20
        assert q.total == 80000

    def test_event_mode_bypasses_rules(self):
        q = quote(MONDAY, "10:00", "11:30", self.court, [], people_count=60, subscription_type="monthly")
        assert q.mode == MODE_EVENT
        assert q.base_total == 300000
        assert q.total == 270000

    def test_total_is_rounded(self):
        q = quote(MONDAY, "10:00", "11:00", self.court, [_rule(rate=33333)])
        assert q.total == 33300

    def test_event_ignores_rule_catalog(self):
        expensive = [_rule(rate=9_000_000, priority=99)]
        assert quote(MONDAY, "10:00", "12:00", self.court, expensive, people_count=100).total == 500000

    def test_price_grows_with_duration(self):
        totals = [
            calculate_dynamic_price(MONDAY, "10:00", end, 1, [_rule()]).total
            for end in ("10:30", "11:00", "12:00", "15:00")
        ]
        assert totals == sorted(totals)
        assert totals[-1] == 5 * 60000


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------


class TestPackages:
    weekend_morning = SimpleNamespace(
        court_id=1, days_of_week=[0, 6], start_time="06:00:00", end_time="09:00:00", total_price=150000
    )
    any_day = SimpleNamespace(court_id=1, days_of_week=None, start_time="18:00:00", end_time="22:00:00", total_price=1)

    def test_contained_window_qualifies(self):
        assert package_applies(self.weekend_morning, 1, 0, "06:00", "08:00")
        assert package_applies(self.weekend_morning, 1, 6, "06:00", "09:00")

    def test_wrong_day_or_court(self):
        assert not package_applies(self.weekend_morning, 1, 1, "06:00", "08:00")
        assert not package_applies(self.weekend_morning, 2, 0, "06:00", "08:00")

    def test_partial_overlap_does_not_qualify(self):
        assert not package_applies(self.weekend_morning, 1, 0, "08:00", "10:00")

    def test_null_days_means_every_day(self):
        found = find_applicable_packages(1, 3, "19:00", "21:00", [self.weekend_morning, self.any_day])
        assert found == [self.any_day]

    def test_evening_block_containment(self):
        evening = [self.any_day]
        assert find_applicable_packages(1, 1, "17:00", "20:00", evening) == []
        assert find_applicable_packages(1, 1, "18:30", "19:30", evening) == evening

    def test_apply_returns_package_window(self):
        assert apply_package(self.weekend_morning) == (150000, "06:00", "09:00")


# ---------------------------------------------------------------------------
# Recurrence
# ---------------------------------------------------------------------------


class TestRecurrence:
    def test_mondays_and_wednesdays(self):
        dates = generate_dates("2025-01-06", "2025-01-26", ["mon", "wed"])
        assert dates == [date(2025, 1, d) for d in (6, 8, 13, 15, 20, 22)]

    def test_end_date_is_inclusive(self):
        dates = generate_dates(date(2025, 1, 6), date(2025, 1, 27), [1])
        assert dates[-1] == date(2025, 1, 27)
        assert len(dates) == 4

    def test_empty_inputs(self):
        assert generate_dates("2025-01-06", "2025-01-26", []) == []
        assert generate_dates(None, "2025-01-26", ["mon"]) == []
        assert generate_dates("2025-01-26", "2025-01-06", ["mon"]) == []

    def test_truncated_at_max_days(self):
        dates = generate_dates(date(2025, 1, 1), date(2030, 1, 1), ALL_DAYS, max_days=10)
        assert len(dates) == 10
        assert dates[-1] == date(2025, 1, 10)

    def test_normalize_days(self):
        assert normalize_days(["Monday", 3, "sun"]) == {0, 1, 3}
        with pytest.raises(ValidationError):
            normalize_days(["someday"])
        with pytest.raises(ValidationError):
            normalize_days([7])

    def test_rule_json(self):
        rule = recurrence_rule(date(2025, 1, 6), date(2025, 1, 26), [3, "mon"])
        assert rule == {"daysOfWeek": ["mon", "wed"], "startDate": "2025-01-06", "endDate": "2025-01-26"}


# ---------------------------------------------------------------------------
# Conflicts and selection rules
# ---------------------------------------------------------------------------


class TestConflicts:
    existing = [_booking(id=1, start="10:00", end="12:00")]

    def test_overlap(self):
        assert find_conflicts([MONDAY], 1, "11:00", "13:00", self.existing) == self.existing

    def test_touching_windows_do_not_clash(self):
        assert find_conflicts([MONDAY], 1, "12:00", "13:00", self.existing) == []
        assert find_conflicts([MONDAY], 1, "08:00", "10:00", self.existing) == []

    def test_inactive_and_other_courts_ignored(self):
        existing = [
            _booking(id=1, status="canceled"),
            _booking(id=2, status="rejected"),
            _booking(id=3, court_id=2),
        ]
        assert find_conflicts([MONDAY], 1, "10:00", "12:00", existing) == []

    def test_pending_blocks(self):
        existing = [_booking(id=1, status="pending")]
        assert len(find_conflicts([MONDAY], 1, "11:00", "11:30", existing)) == 1

    def test_exclusions(self):
        existing = [_booking(id=1, group_id="g1"), _booking(id=2, day=date(2025, 1, 8))]
        assert find_conflicts([MONDAY], 1, "10:00", "12:00", existing, exclude_group_id="g1") == []
        assert find_conflicts([date(2025, 1, 8)], 1, "10:00", "12:00", existing, exclude_id=2) == []

    def test_only_requested_dates(self):
        assert find_conflicts([date(2025, 1, 7)], 1, "10:00", "12:00", self.existing) == []

    def test_existing_booking_past_midnight(self):
        existing = [_booking(id=1, start="23:00", end="01:00")]
        assert len(find_conflicts([date(2025, 1, 7)], 1, "00:30", "02:00", existing)) == 1
        assert find_conflicts([MONDAY], 1, "00:30", "01:00", existing) == []

    def test_candidate_past_midnight(self):
        existing = [_booking(id=1, day=date(2025, 1, 7), start="00:00", end="01:00")]
        assert len(find_conflicts([MONDAY], 1, "23:30", "00:30", existing)) == 1


class TestSlotRules:
    def test_contiguous(self):
        assert check_contiguous_slots(["10:00", "10:30", "11:00"]) is None
        assert check_contiguous_slots(["11:00", "10:00", "10:30"]) is None

    def test_gap_is_rejected(self):
        violation = check_contiguous_slots(["10:00", "11:00"])
        assert violation.rule == "non_contiguous"

    def test_window(self):
        assert selection_window(["10:30", "10:00"]) == ("10:00", "11:00")
        assert selection_window(["23:30"]) == ("23:30", "24:00")

    def test_empty_window(self):
        with pytest.raises(BookingViolation) as exc_info:
            selection_window([])
        assert exc_info.value.rule == "empty_selection"

    def test_status_transitions(self):
        assert check_status_transition(ReservationStatus.PENDING, ReservationStatus.CONFIRMED) is None
        assert check_status_transition(ReservationStatus.CONFIRMED, ReservationStatus.CANCELED) is None
        assert check_status_transition(ReservationStatus.CANCELED, ReservationStatus.CANCELED) is None
        assert check_status_transition(ReservationStatus.CANCELED, ReservationStatus.CONFIRMED).rule == (
            "status_transition"
        )
        assert check_status_transition(ReservationStatus.CONFIRMED, ReservationStatus.REJECTED) is not None


class TestSlotSelection:
    def test_drag_and_submit(self):
        sel = SlotSelection()
        sel.begin(1, MONDAY, "10:00")
        sel.toggle(1, MONDAY, "10:30")
        sel.toggle(2, MONDAY, "11:00")  # other court ignored
        assert sel.finish() == ("10:00", "11:00")
        assert sel.state == SelectionState.SELECTED

        sel.submit()
        assert sel.state == SelectionState.SUBMITTING
        sel.complete()
        assert sel.state == SelectionState.IDLE
        assert sel.slots == []

    def test_gap_keeps_selecting(self):
        sel = SlotSelection()
        sel.begin(1, MONDAY, "10:00")
        sel.toggle(1, MONDAY, "11:00")
        with pytest.raises(BookingViolation):
            sel.finish()
        assert sel.state == SelectionState.SELECTING

        sel.toggle(1, MONDAY, "10:30")
        assert sel.finish() == ("10:00", "11:30")

    def test_deselecting_everything_returns_to_idle(self):
        sel = SlotSelection()
        sel.begin(1, MONDAY, "10:00")
        sel.toggle(1, MONDAY, "10:00")
        with pytest.raises(BookingViolation):
            sel.finish()
        assert sel.state == SelectionState.IDLE

    def test_invalid_events(self):
        sel = SlotSelection()
        with pytest.raises(InvalidTransition):
            sel.submit()
        with pytest.raises(InvalidTransition):
            sel.toggle(1, MONDAY, "10:00")

    def test_cancel_from_anywhere(self):
        sel = SlotSelection()
        sel.begin(1, MONDAY, "10:00")
        sel.cancel()
        assert sel.state == SelectionState.IDLE
        sel.cancel()
        assert sel.state == SelectionState.IDLE

    def test_begin_again_after_selected(self):
        sel = SlotSelection()
        sel.begin(1, MONDAY, "10:00")
        sel.finish()
        sel.begin(2, date(2025, 1, 7), "15:00")
        assert sel.state == SelectionState.SELECTING
        assert (sel.court_id, sel.slots) == (2, ["15:00"])

    def test_replay_board_cells(self):
        assert replay_selection(1, MONDAY, ["11:00", "10:00", "10:30"]) == ("10:00", "11:30")
        # Passing over a cell twice deselects it
        assert replay_selection(1, MONDAY, ["10:00", "10:30", "11:00", "11:00"]) == ("10:00", "11:00")
        with pytest.raises(BookingViolation) as exc_info:
            replay_selection(1, MONDAY, ["10:00", "11:00"])
        assert exc_info.value.rule == "non_contiguous"
        with pytest.raises(ValidationError):
            replay_selection(1, MONDAY, ["24:00"])


class TestDoubleBookingDetection:
    def test_postgres_index_name(self):
        orig = Exception('duplicate key value violates unique constraint "ix_reservations_no_double"')
        assert is_double_booking(IntegrityError("INSERT", {}, orig))

    def test_sqlite_index_columns(self):
        orig = Exception("UNIQUE constraint failed: reservations.court_id, reservations.date, reservations.start_time")
        assert is_double_booking(IntegrityError("INSERT", {}, orig))

    def test_other_constraints(self):
        orig = Exception("NOT NULL constraint failed: reservations.payment_status")
        assert not is_double_booking(IntegrityError("UPDATE", {}, orig))


# ---------------------------------------------------------------------------
# Schedule board
# ---------------------------------------------------------------------------


COURTS = [
    SimpleNamespace(id=1, slug="pink", color="#db2777"),
    SimpleNamespace(id=2, slug="mint", color="#059669"),
]


def _row(grid, time):
    return next(slot for slot in grid if slot.time == time)


class TestDisplayText:
    def test_priority_order(self):
        assert display_text(_booking(team_name="Hoops", guest_name="Kim")) == "Hoops"
        assert display_text(_booking(profile=SimpleNamespace(name="Lee"), guest_name="Kim")) == "Lee"
        assert display_text(_booking(guest_name="Kim")) == "Kim"
        assert display_text(_booking()) == PLACEHOLDER_TEXT

    def test_pending_prefix(self):
        assert display_text(_booking(status="pending", guest_name="Kim")) == "(Pending) Kim"

    def test_unloaded_profile_is_skipped(self):
        booking = Reservation(status=ReservationStatus.CONFIRMED, guest_name="Kim")
        assert display_text(booking) == "Kim"


class TestProjection:
    def test_empty_week(self):
        grid = project([], MONDAY, COURTS)
        assert len(grid) == 36
        assert grid[0].time == "06:00"
        assert grid[-1].time == "23:30"
        assert set(grid[0].courts) == {"mon", "tue", "wed", "thu", "fri", "sat", "sun"}
        assert grid[0].courts["sun"]["mint"].text == ""

    def test_booking_spans_rows(self):
        grid = project([_booking(team_name="Hoops")], MONDAY, COURTS)
        first = _row(grid, "10:00").courts["mon"]["pink"]
        assert (first.text, first.row_span, first.color, first.reservation_id) == ("Hoops", 4, "#db2777", 1)
        for time in ("10:30", "11:00", "11:30"):
            assert _row(grid, time).courts["mon"]["pink"].row_span == 0
        assert _row(grid, "12:00").courts["mon"]["pink"].row_span == 1
        assert _row(grid, "10:00").courts["mon"]["mint"].text == ""

    def test_own_color_and_weekday_column(self):
        grid = project([_booking(day=date(2025, 1, 12), color="#000000")], MONDAY, COURTS)
        assert _row(grid, "10:00").courts["sun"]["pink"].color == "#000000"

    def test_hourly_resolution(self):
        grid = project([_booking(start="10:30", end="11:30")], MONDAY, COURTS, slot_minutes=60)
        assert len(grid) == 18
        assert _row(grid, "10:00").courts["mon"]["pink"].row_span == 2
        assert _row(grid, "11:00").courts["mon"]["pink"].row_span == 0

    def test_span_clamped_at_end_of_grid(self):
        grid = project([_booking(start="23:00", end="01:00")], MONDAY, COURTS)
        assert _row(grid, "23:00").courts["mon"]["pink"].row_span == 2

    def test_filtered_bookings(self):
        bookings = [
            _booking(id=1, status="canceled"),
            _booking(id=2, day=date(2025, 1, 13)),
            _booking(id=3, court_id=99),
            _booking(id=4, start="05:00", end="07:00"),
        ]
        grid = project(bookings, MONDAY, COURTS)
        cells = [cell for slot in grid for day in slot.courts.values() for cell in day.values()]
        assert all(cell.reservation_id is None for cell in cells)

    def test_overlapping_booking_is_dropped(self):
        bookings = [_booking(id=2, start="11:00", end="12:00"), _booking(id=1, start="10:00", end="12:00")]
        grid = project(bookings, MONDAY, COURTS)
        assert _row(grid, "11:00").courts["mon"]["pink"].reservation_id == 1

    def test_idempotent_and_ids_recoverable(self):
        bookings = [
            _booking(id=1, team_name="A"),
            _booking(id=2, court_id=2, start="09:00", end="10:30"),
            _booking(id=3, day=date(2025, 1, 9), start="20:00", end="22:00"),
        ]
        first = project(bookings, MONDAY, COURTS)
        assert project(bookings, MONDAY, COURTS) == first

        owned = {}
        for slot in first:
            for day in slot.courts.values():
                for cell in day.values():
                    if cell.reservation_id is not None:
                        owned[cell.reservation_id] = owned.get(cell.reservation_id, 0) + 1
        assert owned == {1: 4, 2: 3, 3: 4}

    def test_invalid_resolution(self):
        with pytest.raises(ValueError):
            project([], MONDAY, COURTS, slot_minutes=45)
