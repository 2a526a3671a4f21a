"""EMI period arithmetic

Pure functions of (frequency, instant). Periods are half-open ``[start, end)``
intervals over naive UTC datetimes, so consecutive periods of the same
frequency tile the timeline with no overlap and no gap:

- weekly: Monday 00:00 to the following Monday 00:00, key ``"YYYY-Www"`` (ISO week)
- monthly: first of the month to the first of the next month, key ``"YYYY-MM"``
- quarterly: Jan-Mar, Apr-Jun, Jul-Sep, Oct-Dec, key ``"Qn YYYY"`` (display only)
"""

import re
from datetime import datetime, timedelta

from good4it_gateway.domain.exceptions import ValidationError
from good4it_gateway.domain.models import EmiFrequency, Period

_MONTH_KEY = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")
_WEEK_KEY = re.compile(r"^(\d{4})-W(\d{2})$")
_QUARTER_KEY = re.compile(r"^Q([1-4]) (\d{4})$")

_INSTANT = timedelta(microseconds=1)


def month_key(at: datetime) -> str:
    return f"{at.year:04d}-{at.month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    match = _MONTH_KEY.match(key or "")
    if not match:
        raise ValidationError(f"Invalid month '{key}', expected YYYY-MM", code="INVALID_MONTH")
    return int(match.group(1)), int(match.group(2))


def add_months(key: str, months: int) -> str:
    """Shift a "YYYY-MM" key by a (possibly negative) number of months"""
    year, month = parse_month_key(key)
    index = year * 12 + (month - 1) + months
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def month_start(key: str) -> datetime:
    year, month = parse_month_key(key)
    return datetime(year, month, 1)


def month_end(key: str) -> datetime:
    """Exclusive end of the month: midnight on the first of the next month"""
    return month_start(add_months(key, 1))


def _week_period(at: datetime) -> Period:
    day = datetime(at.year, at.month, at.day)
    start = day - timedelta(days=day.weekday())
    iso = start.isocalendar()
    return Period(
        key=f"{iso[0]:04d}-W{iso[1]:02d}",
        label=f"week of {start:%d %b %Y}",
        start=start,
        end=start + timedelta(days=7),
    )


def _month_period(at: datetime) -> Period:
    key = month_key(at)
    start = month_start(key)
    return Period(key=key, label=f"{start:%B %Y}", start=start, end=month_end(key))


def _quarter_period(at: datetime) -> Period:
    quarter = (at.month - 1) // 3
    start = datetime(at.year, quarter * 3 + 1, 1)
    if quarter == 3:
        end = datetime(at.year + 1, 1, 1)
    else:
        end = datetime(at.year, quarter * 3 + 4, 1)
    key = f"Q{quarter + 1} {at.year}"
    return Period(key=key, label=key, start=start, end=end)


_PERIOD_BUILDERS = {
    EmiFrequency.WEEKLY: _week_period,
    EmiFrequency.MONTHLY: _month_period,
    EmiFrequency.QUARTERLY: _quarter_period,
}


def period_for(frequency: EmiFrequency, at: datetime) -> Period:
    """Period of the given frequency that contains ``at``"""
    return _PERIOD_BUILDERS[EmiFrequency(frequency)](at)


def current_period_key(frequency: EmiFrequency, now: datetime) -> str:
    return period_for(frequency, now).key


def parse_period_key(frequency: EmiFrequency, key: str) -> Period:
    """Rebuild a period from its key"""
    frequency = EmiFrequency(frequency)

    if frequency == EmiFrequency.MONTHLY:
        return period_for(frequency, month_start(key))

    if frequency == EmiFrequency.WEEKLY:
        match = _WEEK_KEY.match(key or "")
        if not match:
            raise ValidationError(f"Invalid week '{key}', expected YYYY-Www", code="INVALID_PERIOD")
        try:
            monday = datetime.fromisocalendar(int(match.group(1)), int(match.group(2)), 1)
        except ValueError as e:
            raise ValidationError(f"Invalid week '{key}': {e}", code="INVALID_PERIOD") from e
        return period_for(frequency, monday)

    match = _QUARTER_KEY.match(key or "")
    if not match:
        raise ValidationError(f"Invalid quarter '{key}', expected 'Qn YYYY'", code="INVALID_PERIOD")
    quarter, year = int(match.group(1)), int(match.group(2))
    return period_for(frequency, datetime(year, (quarter - 1) * 3 + 1, 1))


def next_period_start(frequency: EmiFrequency, key: str) -> datetime:
    """Start of the period that follows ``key``"""
    return parse_period_key(frequency, key).end


def next_period(frequency: EmiFrequency, period: Period) -> Period:
    return period_for(frequency, period.end)


def period_covering_month_end(frequency: EmiFrequency, month: str) -> Period:
    """Period that contains the last instant of a "YYYY-MM" month"""
    return period_for(frequency, month_end(month) - _INSTANT)


def last_instant(period: Period) -> datetime:
    return period.end - _INSTANT
