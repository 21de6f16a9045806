"""
Priority, expiry and urgency scoring.

WHAT: Pure scoring functions shared by emergency requests and surplus
      listings, plus price trend statistics
WHY: Rank broadcasts by urgency, decide how long they stay open and
     summarize how a posted price moved
HOW: Table lookups plus deadline buckets, all relative to an explicit `now`
"""

import math
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple

from ..utils.clock import ensure_utc

URGENCY_SCORES: Dict[str, int] = {
    "critical": 100,
    "high": 75,
    "medium": 50,
    "low": 25,
}
DEFAULT_URGENCY_SCORE = 25

# (hours remaining upper bound, bonus) checked in order
DEADLINE_BONUSES: Tuple[Tuple[int, int], ...] = (
    (6, 50),
    (24, 30),
    (72, 10),
)
MAX_PRIORITY = 150

AUTO_EXPIRE_HOURS: Dict[str, int] = {
    "critical": 12,
    "high": 24,
    "medium": 72,
    "low": 168,  # 1 week
}
DEFAULT_EXPIRE_HOURS = 72

REACH_MULTIPLIERS: Dict[str, float] = {
    "critical": 3,
    "high": 2,
    "medium": 1.5,
    "low": 1,
}
KNOWN_CITY_REACH = 50
UNKNOWN_CITY_REACH = 20

QUICK_SALE = "needs_quick_sale"
URGENT_SHELF_HOURS = 24
HIGH_SHELF_HOURS = 72


def hours_until(moment: datetime, now: datetime) -> float:
    """Signed hours from now until moment (negative once passed)."""
    return (ensure_utc(moment) - ensure_utc(now)).total_seconds() / 3600


def compute_priority(urgency_level: str, needed_by: Optional[datetime], now: datetime) -> int:
    """
    Compute the broadcast priority of an emergency request.

    WHAT: Urgency base score plus a deadline-proximity bonus, capped at 150
    WHY: Critical requests with close deadlines must surface first
    HOW: Base from URGENCY_SCORES, first matching DEADLINE_BONUSES bucket

    Overdue deadlines land in the tightest bucket. The value is computed once
    at creation and stored; it is never refreshed as the deadline approaches.

    Args:
        urgency_level: low / medium / high / critical (unknown scores as low)
        needed_by: Optional deadline
        now: Current time

    Returns:
        Integer priority in [0, 150]
    """
    priority = URGENCY_SCORES.get(urgency_level, DEFAULT_URGENCY_SCORE)

    if needed_by is not None:
        remaining = hours_until(needed_by, now)
        for bound, bonus in DEADLINE_BONUSES:
            if remaining <= bound:
                priority += bonus
                break

    return min(priority, MAX_PRIORITY)


def auto_expire_hours(urgency_level: str) -> int:
    """Hours an emergency request stays open before it counts as expired."""
    return AUTO_EXPIRE_HOURS.get(urgency_level, DEFAULT_EXPIRE_HOURS)


def estimated_reach(city: Optional[str], urgency_level: str) -> int:
    """Advisory count of vendors a broadcast is expected to reach."""
    base = KNOWN_CITY_REACH if city else UNKNOWN_CITY_REACH
    return math.floor(base * REACH_MULTIPLIERS.get(urgency_level, 1))


def surplus_priority(
    condition: str,
    expiry_date: Optional[datetime],
    now: datetime
) -> Tuple[str, str]:
    """
    Derive a surplus listing's priority and effective condition.

    Stock expiring within a day is forced to urgent and flagged for quick
    sale regardless of the condition the vendor gave.

    Args:
        condition: Vendor-supplied condition
        expiry_date: Optional shelf-life end
        now: Current time

    Returns:
        Tuple of (priority, condition)
    """
    priority = "high" if condition == QUICK_SALE else "normal"

    if expiry_date is not None:
        remaining = hours_until(expiry_date, now)
        if remaining <= URGENT_SHELF_HOURS:
            return "urgent", QUICK_SALE
        if remaining <= HIGH_SHELF_HOURS:
            priority = "high"

    return priority, condition


def _window(moment: datetime, now: datetime) -> Tuple[int, bool]:
    remaining = max(0.0, hours_until(moment, now))
    return math.floor(remaining), remaining <= 0


def deadline_window(needed_by: Optional[datetime], now: datetime) -> Optional[dict]:
    """Read-time `timeRemaining` for an emergency deadline."""
    if needed_by is None:
        return None
    hours, passed = _window(needed_by, now)
    return {"hours": hours, "days": hours // 24, "overdue": passed}


def expiry_window(expires_at: Optional[datetime], now: datetime) -> Optional[dict]:
    """Read-time `expiryInfo` for an emergency request's auto-expiry."""
    if expires_at is None:
        return None
    hours, passed = _window(expires_at, now)
    return {"hours": hours, "expired": passed}


def shelf_window(expiry_date: Optional[datetime], now: datetime) -> Optional[dict]:
    """Read-time `timeRemaining` for surplus stock shelf life."""
    if expiry_date is None:
        return None
    hours, passed = _window(expiry_date, now)
    return {"hours": hours, "days": hours // 24, "expired": passed}


def price_trend(prices: Sequence[float]) -> Dict[str, Any]:
    """
    Summarize prices given oldest first.

    Average, min and max are 0 for an empty series. The change is measured
    from the first to the last price, so a series of one is flat.
    """
    if not prices:
        return {
            "average_price": 0.0,
            "min_price": 0.0,
            "max_price": 0.0,
            "is_increasing": False,
            "percent_change": 0.0,
        }

    first, last = prices[0], prices[-1]
    percent_change = (last - first) / first * 100 if len(prices) > 1 and first else 0.0
    return {
        "average_price": round(sum(prices) / len(prices), 2),
        "min_price": min(prices),
        "max_price": max(prices),
        "is_increasing": len(prices) > 1 and last > first,
        "percent_change": round(percent_change, 2),
    }
