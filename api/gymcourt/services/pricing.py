"""Pricing service for reservation cost calculation.

Three layers, applied in order:

1. Base price. Either the rule engine (per 30-minute slot, highest-priority
   matching rule wins) or, for large groups, a flat per-hour event rate that
   bypasses the rule catalog entirely.
2. Subscription discount (monthly / 3-month commitments).
3. Rounding down to the nearest 100 currency units.

Pure calculation module: callers fetch rules and pass them in.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

from gymcourt.services.timeutil import MINUTES_PER_DAY, day_index, minutes_to_time, span_minutes, time_to_minutes

logger = logging.getLogger(__name__)

SLOT_MINUTES = 30

# Event pricing: headcount threshold and tiers (min people, rate per hour)
EVENT_MIN_PEOPLE = 50
EVENT_TIERS = (
    (200, 400000),
    (150, 300000),
    (100, 250000),
)

# Subscription discounts in percent
DISCOUNT_PERCENT = {
    "daily": 0,
    "monthly": 10,
    "3month": 20,
}

ROUNDING_UNIT = 100

MODE_RULES = "rules"
MODE_EVENT = "event"
MODE_PACKAGE = "package"


class PricingConfigurationError(Exception):
    """The rule catalog does not cover a requested slot."""

    def __init__(self, court_id, day: int, minute: int):
        self.court_id = court_id
        self.day = day
        self.minute = minute
        super().__init__(
            f"No price rule covers court {court_id} on day {day} at {minutes_to_time(minute)}; "
            f"the rule catalog is incomplete."
        )


@dataclass
class PriceResult:
    total: float
    breakdown: list[str] = field(default_factory=list)


@dataclass
class Quote:
    base_total: float
    discount_percent: int
    total: int
    mode: str
    breakdown: list[str] = field(default_factory=list)


def _rule_covers(rule, court_id, day: int, minute: int) -> bool:
    if rule.court_id and rule.court_id != court_id:
        return False
    if day not in rule.days_of_week:
        return False
    return time_to_minutes(rule.start_time) <= minute < time_to_minutes(rule.end_time)


def best_rule(rules: Sequence, court_id, day: int, minute: int):
    """Return the highest-priority rule covering ``minute`` on ``day``, or None.

    Ties on priority go to the earliest rule in ``rules``.
    """
    best = None
    for rule in rules:
        if not _rule_covers(rule, court_id, day, minute):
            continue
        if best is None or rule.priority > best.priority:
            best = rule
    return best


def calculate_dynamic_price(
    booking_date: date,
    start_time: str,
    end_time: str,
    court_id,
    rules: Sequence,
    fallback_rate: int | None = None,
) -> PriceResult:
    """Price a window by summing half-hour slots of the best matching rule.

    A window whose end is before its start runs past midnight; slots after
    midnight are matched against the next weekday. Without ``fallback_rate``
    an uncovered slot raises PricingConfigurationError.
    """
    dow = day_index(booking_date)
    start, end = span_minutes(start_time, end_time)

    total = 0.0
    breakdown: list[str] = []

    for current in range(start, end, SLOT_MINUTES):
        check_time = current % MINUTES_PER_DAY
        check_day = dow if current < MINUTES_PER_DAY else (dow + 1) % 7

        rule = best_rule(rules, court_id, check_day, check_time)
        if rule is not None:
            total += rule.price_per_hour / 2
            continue

        if fallback_rate is None:
            raise PricingConfigurationError(court_id, check_day, check_time)

        logger.warning(
            "No price rule for court %s day %d at %s, using fallback %d/h",
            court_id,
            check_day,
            minutes_to_time(check_time),
            fallback_rate,
        )
        total += fallback_rate / 2
        breakdown.append(f"No rule found for {minutes_to_time(check_time)}, used fallback {fallback_rate}/h")

    return PriceResult(total=total, breakdown=breakdown)


def event_rate(people_count: int, court_rate: int) -> int:
    """Hourly event rate for a headcount (assumes people_count >= EVENT_MIN_PEOPLE)."""
    for min_people, rate in EVENT_TIERS:
        if people_count >= min_people:
            return rate
    return court_rate


def is_event(people_count: int) -> bool:
    return people_count >= EVENT_MIN_PEOPLE


def event_price(people_count: int, start_time: str, end_time: str, court_rate: int) -> float:
    """Flat per-hour event price times the window length in hours."""
    start, end = span_minutes(start_time, end_time)
    return event_rate(people_count, court_rate) * (end - start) / 60


def apply_discount(total: float, subscription_type: str = "daily") -> float:
    percent = DISCOUNT_PERCENT.get(subscription_type)
    if percent is None:
        raise ValueError(f"Unknown subscription type: {subscription_type}")
    return total * (100 - percent) / 100


def round_price(total: float) -> int:
    """Floor to the nearest ROUNDING_UNIT."""
    return int(total // ROUNDING_UNIT) * ROUNDING_UNIT


def quote(
    booking_date: date,
    start_time: str,
    end_time: str,
    court,
    rules: Sequence,
    people_count: int = 1,
    subscription_type: str = "daily",
    fallback_rate: int | None = None,
) -> Quote:
    """Full price for one date: base (event or rules), discount, rounding.

    ``court`` needs ``id`` and ``event_rate_per_hour``.
    """
    if is_event(people_count):
        base = event_price(people_count, start_time, end_time, court.event_rate_per_hour)
        mode = MODE_EVENT
        breakdown = [f"Event rate for {people_count} people"]
    else:
        result = calculate_dynamic_price(booking_date, start_time, end_time, court.id, rules, fallback_rate)
        base = result.total
        mode = MODE_RULES
        breakdown = result.breakdown

    return Quote(
        base_total=base,
        discount_percent=DISCOUNT_PERCENT.get(subscription_type, 0),
        total=round_price(apply_discount(base, subscription_type)),
        mode=mode,
        breakdown=breakdown,
    )
