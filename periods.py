from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

DateLike = Union[date, datetime]

REPORT_TYPES = ("monthly", "quarterly", "yearly", "custom")
DASHBOARD_PERIODS = ("week", "month", "quarter", "year")
DEFAULT_DASHBOARD_PERIOD = "month"

QUARTER_START_MONTHS = {1: 1, 2: 4, 3: 7, 4: 10}


class InvalidPeriodError(ValueError):
    pass


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def previous(self) -> "Period":
        prev_end = self.start - timedelta(days=1)
        prev_start = prev_end - timedelta(days=self.days - 1)
        return Period(f"{self.slug}_previous", prev_start, prev_end)

    def overlaps(self, start: date, end: date) -> bool:
        return start <= self.end and end >= self.start

    def clip(self, start: date, end: date) -> Optional["Period"]:
        """Intersection of this window with ``[start, end]``, or None if disjoint."""
        if not self.overlaps(start, end):
            return None
        return Period(self.slug, max(start, self.start), min(end, self.end))


def as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    first = month_start(d)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def shift_months(d: date, count: int) -> date:
    """Move ``d`` by ``count`` months, clamping the day to the target month."""
    first = add_months(d, count)
    return first.replace(day=min(d.day, month_end(first).day))


def week_start(d: date) -> date:
    return d - timedelta(days=d.weekday())


def quarter_of(d: date) -> int:
    return (d.month - 1) // 3 + 1


def _require(value, message: str):
    if value is None:
        raise InvalidPeriodError(message)
    return value


def period_between(slug: str, start: DateLike, end: DateLike) -> Period:
    start_date = as_date(start)
    end_date = as_date(end)
    if start_date > end_date:
        raise InvalidPeriodError("start date must be on or before end date")
    return Period(slug, start_date, end_date)


def report_period(
    report_type: str,
    *,
    year: Optional[int] = None,
    month: Optional[int] = None,
    quarter: Optional[int] = None,
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None,
) -> Period:
    if report_type not in REPORT_TYPES:
        raise InvalidPeriodError(f"invalid report type: {report_type}")

    if report_type == "monthly":
        year = _require(year, "monthly report requires a year")
        month = _require(month, "monthly report requires a month")
        if not 1 <= month <= 12:
            raise InvalidPeriodError(f"invalid month: {month}")
        first = date(year, month, 1)
        return Period("monthly", first, month_end(first))

    if report_type == "quarterly":
        year = _require(year, "quarterly report requires a year")
        quarter = _require(quarter, "quarterly report requires a quarter")
        start_month = QUARTER_START_MONTHS.get(quarter)
        if start_month is None:
            raise InvalidPeriodError(f"invalid quarter: {quarter}")
        first = date(year, start_month, 1)
        return Period("quarterly", first, add_months(first, 3) - date.resolution)

    if report_type == "yearly":
        year = _require(year, "yearly report requires a year")
        return Period("yearly", date(year, 1, 1), date(year, 12, 31))

    start = _require(start, "custom report requires a start date")
    end = _require(end, "custom report requires an end date")
    return period_between("custom", start, end)


def dashboard_period(name: Optional[str], *, today: Optional[date] = None) -> Period:
    today = today or date.today()
    if name not in DASHBOARD_PERIODS:
        name = DEFAULT_DASHBOARD_PERIOD
    if name == "week":
        return Period("week", today - timedelta(days=7), today)
    if name == "quarter":
        return Period("quarter", shift_months(today, -3), today)
    if name == "year":
        return Period("year", shift_months(today, -12), today)
    return Period("month", shift_months(today, -1), today)


def resolve_period(
    period: Optional[str],
    start: Optional[DateLike],
    end: Optional[DateLike],
    *,
    today: Optional[date] = None,
) -> Period:
    """Window for the analytics endpoints.

    Explicit bounds win; otherwise the calendar month, quarter or year that
    contains ``today`` is used depending on ``period``.
    """
    today = today or date.today()
    slug = period or "monthly"
    if start is not None or end is not None:
        if start is None or end is None:
            raise InvalidPeriodError("both start and end dates are required")
        return period_between(slug, start, end)
    if slug == "quarterly":
        window = report_period("quarterly", year=today.year, quarter=quarter_of(today))
    elif slug == "yearly":
        window = report_period("yearly", year=today.year)
    else:
        window = report_period("monthly", year=today.year, month=today.month)
    return window
