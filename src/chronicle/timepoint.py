"""
Extended-year calendar points, ISO-8601 durations and precision normalization.

Wikidata time values span geological ages while ``datetime`` stops at year
9999, so points are kept as plain field tuples on the proleptic Gregorian
calendar (astronomical year numbering) and converted through day numbers for
arithmetic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional

SECONDS_PER_DAY = 86400
DAYS_PER_YEAR = 365.2425
SECONDS_PER_YEAR = DAYS_PER_YEAR * SECONDS_PER_DAY
SECONDS_PER_MONTH = SECONDS_PER_YEAR / 12

TIME_PATTERN = re.compile(
    r"^\s*([+-]?)(\d{1,16})-(\d{1,2})-(\d{1,2})"
    r"(?:[T ](\d{1,2}):(\d{1,2})(?::(\d{1,2})(?:\.\d+)?)?)?"
    r"\s*(?:Z|[+-]00:?00)?\s*$"
)
_NUMBER = r"(\d+(?:\.\d+)?)"
DURATION_PATTERN = re.compile(
    rf"^P(?:{_NUMBER}Y)?(?:{_NUMBER}M)?(?:{_NUMBER}W)?(?:{_NUMBER}D)?"
    rf"(?:T(?:{_NUMBER}H)?(?:{_NUMBER}M)?(?:{_NUMBER}S)?)?$"
)

YEAR_PRECISIONS = range(0, 10)
PRECISION_MONTH = 10
PRECISION_DAY = 11
PRECISION_HOUR = 12
PRECISION_MINUTE = 13
PRECISION_SECOND = 14


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def days_in_month(year: int, month: int) -> int:
    if month == 2:
        return 29 if is_leap_year(year) else 28
    return 30 if month in (4, 6, 9, 11) else 31


def days_from_civil(year: int, month: int, day: int) -> int:
    """Return the day number of a civil date relative to 1970-01-01."""
    y = year - 1 if month <= 2 else year
    era = y // 400
    yoe = y - era * 400
    doy = (153 * ((month + 9) % 12) + 2) // 5 + day - 1
    doe = yoe * 365 + yoe // 4 - yoe // 100 + doy
    return era * 146097 + doe - 719468


def civil_from_days(days: int) -> tuple[int, int, int]:
    """Inverse of days_from_civil."""
    z = days + 719468
    era = z // 146097
    doe = z - era * 146097
    yoe = (doe - doe // 1460 + doe // 36524 - doe // 146096) // 365
    doy = doe - (365 * yoe + yoe // 4 - yoe // 100)
    mp = (5 * doy + 2) // 153
    day = doy - (153 * mp + 2) // 5 + 1
    month = mp + 3 if mp < 10 else mp - 9
    year = yoe + era * 400 + (1 if month <= 2 else 0)
    return year, month, day


@dataclass(frozen=True)
class Duration:
    """Calendar-aware duration; whole years and months are applied on the calendar."""

    years: float = 0
    months: float = 0
    days: float = 0
    seconds: float = 0

    @classmethod
    def parse(cls, text: str) -> "Duration":
        if not isinstance(text, str):
            raise ValueError(f"Duration must be an ISO-8601 string, got {text!r}")
        match = DURATION_PATTERN.match(text.strip().upper())
        if not match or text.strip().upper() in {"P", "PT"}:
            raise ValueError(f"Invalid ISO-8601 duration {text!r}")
        years, months, weeks, days, hours, minutes, seconds = (float(part or 0) for part in match.groups())
        return cls(
            years=years,
            months=months,
            days=days + weeks * 7,
            seconds=hours * 3600 + minutes * 60 + seconds,
        )

    @classmethod
    def from_seconds(cls, seconds: float) -> "Duration":
        return cls(seconds=seconds)

    def total_seconds(self) -> float:
        return (
            self.years * SECONDS_PER_YEAR
            + self.months * SECONDS_PER_MONTH
            + self.days * SECONDS_PER_DAY
            + self.seconds
        )

    def __mul__(self, factor: float) -> "Duration":
        return Duration(self.years * factor, self.months * factor, self.days * factor, self.seconds * factor)

    __rmul__ = __mul__

    def __neg__(self) -> "Duration":
        return self * -1

    def __sub__(self, other: "Duration") -> "Duration":
        return Duration.from_seconds(self.total_seconds() - other.total_seconds())

    def __lt__(self, other: "Duration") -> bool:
        return self.total_seconds() < other.total_seconds()

    def __le__(self, other: "Duration") -> bool:
        return self.total_seconds() <= other.total_seconds()

    def __gt__(self, other: "Duration") -> bool:
        return self.total_seconds() > other.total_seconds()

    def __ge__(self, other: "Duration") -> bool:
        return self.total_seconds() >= other.total_seconds()


@dataclass(frozen=True, order=True)
class TimePoint:
    year: int
    month: int = 1
    day: int = 1
    hour: int = 0
    minute: int = 0
    second: int = 0

    @classmethod
    def parse(cls, text: str) -> "TimePoint":
        """Parse signed, extended-year ISO strings such as ``+001999-00-00T00:00:00Z``."""
        match = TIME_PATTERN.match(text or "")
        if not match:
            raise ValueError(f"Unparseable time value {text!r}")
        sign, year, month, day, hour, minute, second = match.groups()
        year = -int(year) if sign == "-" else int(year)
        month = max(int(month), 1)
        day = max(int(day), 1)
        hour, minute, second = int(hour or 0), int(minute or 0), int(second or 0)
        if month > 12 or day > days_in_month(year, month) or hour > 23 or minute > 59 or second > 59:
            raise ValueError(f"Out-of-range time value {text!r}")
        return cls(year, month, day, hour, minute, second)

    @classmethod
    def from_timestamp(cls, seconds: float) -> "TimePoint":
        days, rem = divmod(int(round(seconds)), SECONDS_PER_DAY)
        year, month, day = civil_from_days(days)
        hour, rem = divmod(rem, 3600)
        minute, second = divmod(rem, 60)
        return cls(year, month, day, hour, minute, second)

    @classmethod
    def from_datetime(cls, value: datetime) -> "TimePoint":
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return cls(value.year, value.month, value.day, value.hour, value.minute, value.second)

    @classmethod
    def now(cls) -> "TimePoint":
        return cls.from_datetime(datetime.now(UTC))

    def timestamp(self) -> int:
        days = days_from_civil(self.year, self.month, self.day)
        return days * SECONDS_PER_DAY + self.hour * 3600 + self.minute * 60 + self.second

    def isoformat(self) -> str:
        sign = "-" if self.year < 0 else "+"
        return (
            f"{sign}{abs(self.year):06d}-{self.month:02d}-{self.day:02d}"
            f"T{self.hour:02d}:{self.minute:02d}:{self.second:02d}"
        )

    def __str__(self) -> str:
        return self.isoformat()

    def shift(self, duration: Duration) -> "TimePoint":
        whole_years = int(duration.years)
        whole_months = int(duration.months)
        month_index = self.month - 1 + whole_months + whole_years * 12
        year = self.year + month_index // 12
        month = month_index % 12 + 1
        day = min(self.day, days_in_month(year, month))
        moved = TimePoint(year, month, day, self.hour, self.minute, self.second)
        extra = (
            (duration.years - whole_years) * SECONDS_PER_YEAR
            + (duration.months - whole_months) * SECONDS_PER_MONTH
            + duration.days * SECONDS_PER_DAY
            + duration.seconds
        )
        if not extra:
            return moved
        return TimePoint.from_timestamp(moved.timestamp() + extra)

    def __add__(self, other: Duration) -> "TimePoint":
        if not isinstance(other, Duration):
            return NotImplemented
        return self.shift(other)

    def __sub__(self, other):
        if isinstance(other, Duration):
            return self.shift(-other)
        if isinstance(other, TimePoint):
            return Duration.from_seconds(self.timestamp() - other.timestamp())
        return NotImplemented


def round_year(year: int, precision: int) -> int:
    """Round a year to the nearest multiple of 10^(9-precision), halves rounding up."""
    base = 10 ** (9 - precision)
    return ((2 * year + base) // (2 * base)) * base


def normalize_time(value: Optional[str], precision: Optional[int]) -> Optional[TimePoint]:
    """Reduce a raw (value, precision) pair to a point at the granularity it encodes."""
    if not value:
        return None
    point = TimePoint.parse(value)
    precision = PRECISION_DAY if precision is None else int(precision)
    if precision in YEAR_PRECISIONS:
        return TimePoint(round_year(point.year, precision))
    if precision == PRECISION_MONTH:
        return TimePoint(point.year, point.month)
    if precision == PRECISION_DAY:
        return TimePoint(point.year, point.month, point.day)
    if precision == PRECISION_HOUR:
        return TimePoint(point.year, point.month, point.day, point.hour)
    if precision == PRECISION_MINUTE:
        return TimePoint(point.year, point.month, point.day, point.hour, point.minute)
    if precision == PRECISION_SECOND:
        return point
    raise ValueError(f"Unrecognized date precision {precision}")
