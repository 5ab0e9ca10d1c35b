"""
Numeric and time helpers shared by the governance scorers.

Scores use half-up rounding (2.5 -> 3, 0.5 -> 1) throughout. Python's
built-in round() is banker's rounding and would shift published scores
by one point on exact halves.
"""

import math
from collections.abc import Sequence
from datetime import UTC, datetime

SECONDS_PER_HOUR = 3600.0
SECONDS_PER_DAY = 86400.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves upward."""
    return math.floor(value + 0.5)


def round_to(value: float, digits: int) -> float:
    """Round to `digits` decimals, halves upward."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def compute_gini(values: Sequence[float]) -> float:
    """
    Gini coefficient of non-negative values, in [0, 1).

    0 means perfect equality (including all zeros); values approach 1 as
    activity concentrates in one member. Fewer than two values -> 0.
    """
    n = len(values)
    if n <= 1:
        return 0.0

    ordered = sorted(values)
    # Equal values are exactly 0; the weighted sum would leave float residue
    if ordered[0] == ordered[-1]:
        return 0.0
    total = sum(ordered)
    if total == 0:
        return 0.0

    weighted = sum((2 * (i + 1) - n - 1) * v for i, v in enumerate(ordered))
    return weighted / (n * total)


def median(values: Sequence[float]) -> float | None:
    """Conventional median (mean of the two middle values for even counts)."""
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def upper_median(values: Sequence[float]) -> float | None:
    """Median taking the upper-middle element for even counts."""
    if not values:
        return None
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


def format_number(value: float) -> str:
    """Render a number without a trailing .0 (2.0 -> '2', 2.5 -> '2.5')."""
    if value == int(value):
        return str(int(value))
    return repr(float(value))


def percent(share: float) -> str:
    """0.734 -> '73%'."""
    return f"{round_half_up(share * 100)}%"


# =============================================================================
# Timestamps
# =============================================================================


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 timestamp to an aware UTC datetime.

    Naive values are taken as UTC. Empty or unparseable input returns None;
    callers exclude such records from time-window filters.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_HOUR


def format_hours(hours: float) -> str:
    """Compact duration: 0.5 -> '30m', 5.25 -> '5.3h', 36 -> '1.5d'."""
    if hours < 1:
        return f"{round_half_up(hours * 60)}m"
    if hours < 24:
        return f"{format_number(round_to(hours, 1))}h"
    return f"{format_number(round_to(hours / 24, 1))}d"
