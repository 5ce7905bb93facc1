"""Fixed-price package matching.

A package is offered only when its fixed window fully contains the requested
window; partial overlap does not qualify. Choosing a package replaces both the
computed price and the requested times with the package's own.
"""

from collections.abc import Sequence

from gymcourt.services.timeutil import normalize_time, time_to_minutes


def package_applies(pkg, court_id, day_of_week: int, start_time: str, end_time: str) -> bool:
    if pkg.court_id != court_id:
        return False
    if pkg.days_of_week is not None and day_of_week not in pkg.days_of_week:
        return False
    return time_to_minutes(pkg.start_time) <= time_to_minutes(start_time) and time_to_minutes(
        pkg.end_time
    ) >= time_to_minutes(end_time)


def find_applicable_packages(
    court_id,
    day_of_week: int,
    start_time: str,
    end_time: str,
    packages: Sequence,
) -> list:
    """Packages for ``court_id`` on ``day_of_week`` (0=Sunday) whose window contains the request."""
    return [p for p in packages if package_applies(p, court_id, day_of_week, start_time, end_time)]


def apply_package(pkg) -> tuple[int, str, str]:
    """Return (price, start_time, end_time) that a selected package imposes."""
    return pkg.total_price, normalize_time(pkg.start_time), normalize_time(pkg.end_time)
