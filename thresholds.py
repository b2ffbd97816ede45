"""Bands and thresholds shared by the analytics components.

All percentages are on a 0-100 scale and pass through ``round_pct`` before
they are compared against any band below.
"""

from decimal import ROUND_HALF_EVEN, Decimal

PERCENT_PLACES = Decimal("0.01")

# Budget status, by share of the budget already spent.
BUDGET_WARNING_PCT = 80.0
BUDGET_OVER_PCT = 100.0

# Budget alerts escalate warning -> danger -> critical.
ALERT_WARNING_PCT = 60.0
ALERT_DANGER_PCT = 80.0
ALERT_CRITICAL_PCT = 100.0

# Period-over-period trend detection.
TREND_INCREASE_FACTOR = 1.1
TREND_DECREASE_FACTOR = 0.9

# Financial health: (minimum savings rate, points), best first.
SAVINGS_SCORE_BANDS = ((20.0, 40), (15.0, 30), (10.0, 20), (5.0, 10))
# (maximum expense ratio, points), best first.
EXPENSE_SCORE_BANDS = ((50.0, 30), (70.0, 20), (85.0, 10))
# (variance % low, variance % high, points), tightest first.
BUDGET_SCORE_BANDS = ((-10.0, 5.0, 30), (-20.0, 10.0, 20), (-30.0, 15.0, 10))
# (minimum overall score, status), best first; anything lower is "poor".
HEALTH_STATUS_BANDS = ((80, "excellent"), (60, "good"), (40, "fair"))

HEALTH_LOW_SAVINGS_PCT = 10.0
HEALTH_HIGH_EXPENSE_PCT = 80.0

# Report insight and recommendation rules.
SAVINGS_EXCELLENT_PCT = 20.0
SAVINGS_GOOD_PCT = 10.0
BUDGET_SCORE_GREAT = 80.0
BUDGET_SCORE_GOOD = 60.0
CATEGORY_CONCENTRATION_PCT = 30.0
CATEGORY_REDUCTION_PCT = 25.0

TOP_CATEGORIES_LIMIT = 5
RECENT_TRANSACTIONS_LIMIT = 10


def round_pct(value: float) -> float:
    """Round half-even to two decimal places."""
    return float(Decimal(repr(float(value))).quantize(PERCENT_PLACES, ROUND_HALF_EVEN))


def round_cents(value: float) -> float:
    """Fractional cent amounts (averages) follow the same rounding policy."""
    return round_pct(value)


def pct(part: int, whole: int) -> float:
    """``part / whole * 100`` under the shared rounding policy, 0 when ``whole`` is 0."""
    if not whole:
        return 0.0
    return round_pct(part * 100 / whole)
