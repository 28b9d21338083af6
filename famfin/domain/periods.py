"""
Period lattice generator.

Deterministic calendar periods of three types, shared by every obligation:

- MONTHLY:    calendar month, id "2025M01"
- BI_MONTHLY: days 1-15 ("2025BM01A") and day 16 to month end ("2025BM01B")
- WEEKLY:     Monday..Sunday, ISO week number via the nearest-Thursday rule ("2025W05")

Dates only, no timezone. Windows are inclusive on both ends.
"""
import calendar
import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)


PERIOD_WEEKLY = "WEEKLY"
PERIOD_BI_MONTHLY = "BI_MONTHLY"
PERIOD_MONTHLY = "MONTHLY"
PERIOD_TYPES = (PERIOD_MONTHLY, PERIOD_BI_MONTHLY, PERIOD_WEEKLY)

_MONTHLY_ID = re.compile(r"^(\d{4})M(\d{2})$")
_BI_MONTHLY_ID = re.compile(r"^(\d{4})BM(\d{2})([AB])$")
_WEEKLY_ID = re.compile(r"^(\d{4})W(\d{2})$")


@dataclass(frozen=True)
class PeriodSpec:
    id: str
    period_type: str
    start_date: date
    end_date: date
    year: int
    index: int
    month: int | None = None
    half: str | None = None  # "A" / "B" for BI_MONTHLY
    week_number: int | None = None

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def metadata(self) -> Dict[str, Any]:
        meta: Dict[str, Any] = {}
        if self.month is not None:
            meta["month"] = self.month
        if self.half is not None:
            meta["half"] = self.half
        if self.week_number is not None:
            meta["week_number"] = self.week_number
            meta["iso_year"] = self.year
        return meta


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(d: date, n: int) -> date:
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    day = min(d.day, last_day_of_month(year, month))
    return date(year, month, day)


def iso_week(day: date) -> Tuple[int, int]:
    """
    ISO week-year and week number of a date.

    Nearest Thursday: move to the Thursday of the same Monday-based week;
    that Thursday's calendar year is the week-year, and the week number
    counts 7-day steps from the first Thursday of that year.
    """
    thursday = day + timedelta(days=3 - day.weekday())
    jan1 = date(thursday.year, 1, 1)
    return thursday.year, (thursday - jan1).days // 7 + 1


def monthly_period(year: int, month: int) -> PeriodSpec:
    return PeriodSpec(
        id=f"{year}M{month:02d}",
        period_type=PERIOD_MONTHLY,
        start_date=date(year, month, 1),
        end_date=date(year, month, last_day_of_month(year, month)),
        year=year,
        index=int(f"{year}{month:02d}"),
        month=month,
    )


def bi_monthly_period(year: int, month: int, half: str) -> PeriodSpec:
    if half == "A":
        start, end = date(year, month, 1), date(year, month, 15)
    elif half == "B":
        start, end = date(year, month, 16), date(year, month, last_day_of_month(year, month))
    else:
        raise ValueError(f"invalid half: {half}")
    return PeriodSpec(
        id=f"{year}BM{month:02d}{half}",
        period_type=PERIOD_BI_MONTHLY,
        start_date=start,
        end_date=end,
        year=year,
        index=int(f"{year}{month:02d}{1 if half == 'A' else 2}"),
        month=month,
        half=half,
    )


def weekly_period(monday: date) -> PeriodSpec:
    if monday.weekday() != 0:
        raise ValueError(f"week must start on Monday, got {monday.isoformat()}")
    iso_year, week = iso_week(monday)
    return PeriodSpec(
        id=f"{iso_year}W{week:02d}",
        period_type=PERIOD_WEEKLY,
        start_date=monday,
        end_date=monday + timedelta(days=6),
        year=iso_year,
        index=int(f"{iso_year}{week:02d}"),
        week_number=week,
    )


def period_containing(period_type: str, day: date) -> PeriodSpec:
    """Return the period of the given type whose window contains `day`."""
    if period_type == PERIOD_MONTHLY:
        return monthly_period(day.year, day.month)
    if period_type == PERIOD_BI_MONTHLY:
        return bi_monthly_period(day.year, day.month, "A" if day.day <= 15 else "B")
    if period_type == PERIOD_WEEKLY:
        return weekly_period(day - timedelta(days=day.weekday()))
    raise ValueError(f"invalid period type: {period_type}")


def period_from_id(period_id: str) -> PeriodSpec:
    """
    Rebuild a period from its identifier.

    Raises:
        ValueError: malformed id or a week number the year does not have
    """
    m = _MONTHLY_ID.match(period_id)
    if m:
        year, month = int(m.group(1)), int(m.group(2))
        if not 1 <= month <= 12:
            raise ValueError(f"invalid period id: {period_id}")
        return monthly_period(year, month)

    m = _BI_MONTHLY_ID.match(period_id)
    if m:
        year, month = int(m.group(1)), int(m.group(2))
        if not 1 <= month <= 12:
            raise ValueError(f"invalid period id: {period_id}")
        return bi_monthly_period(year, month, m.group(3))

    m = _WEEKLY_ID.match(period_id)
    if m:
        year, week = int(m.group(1)), int(m.group(2))
        try:
            monday = date.fromisocalendar(year, week, 1)
        except ValueError as exc:
            raise ValueError(f"invalid period id: {period_id}") from exc
        return weekly_period(monday)

    raise ValueError(f"invalid period id: {period_id}")


def generate_periods(period_type: str, anchor_date: date, horizon_end: date) -> List[PeriodSpec]:
    """
    Ordered, gap-free periods from the one containing `anchor_date`
    through the one containing `horizon_end`.

    A period that cannot be built, or whose window is inverted or overlaps
    the previous one, is logged and skipped; generation goes on from the
    next day. Any hole left behind shows up in find_gaps().
    """
    if period_type not in PERIOD_TYPES:
        raise ValueError(f"invalid period type: {period_type}")

    periods: List[PeriodSpec] = []
    previous: PeriodSpec | None = None
    cursor = anchor_date

    while cursor <= horizon_end:
        try:
            period = period_containing(period_type, cursor)
        except (ValueError, OverflowError):
            logger.warning("Skipping malformed %s period at %s", period_type, cursor, exc_info=True)
            cursor += timedelta(days=1)
            continue

        if period.end_date < period.start_date or (
            previous is not None and period.start_date <= previous.end_date
        ):
            logger.warning(
                "Skipping %s period %s: window %s..%s breaks the sequence",
                period_type, period.id, period.start_date, period.end_date,
            )
            cursor = max(cursor, period.end_date) + timedelta(days=1)
            continue

        periods.append(period)
        previous = period
        cursor = period.end_date + timedelta(days=1)

    return periods


def find_gaps(periods: List[PeriodSpec]) -> List[Tuple[PeriodSpec, PeriodSpec]]:
    """Pairs of consecutive periods that are not exactly adjacent."""
    gaps = []
    for prev, nxt in zip(periods, periods[1:]):
        if prev.end_date + timedelta(days=1) != nxt.start_date:
            gaps.append((prev, nxt))
    return gaps
