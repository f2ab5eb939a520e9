"""Parsing of flexible time points and time ranges.

Time points are accepted in many shapes: Unix timestamps, compact and dashed
dates, dates with a time of day, RFC 3339, relative offsets such as ``3d-ago``,
words such as ``today`` or ``last-month``, years, months and quarters.
Every parsed point carries a granularity, and a range built from a point
spans the whole period that granularity describes.
"""

from __future__ import annotations

import calendar
import re
import time as _time
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import IntEnum
from typing import Callable, Optional


class TimeGranularity(IntEnum):
    """How precisely a parsed time point was specified."""

    UNKNOWN = 0
    SECOND = 1
    MINUTE = 2
    HOUR = 3
    DAY = 4
    MONTH = 5
    QUARTER = 6
    YEAR = 7


_EPOCH = datetime(1970, 1, 1)


class _LocalTimezone(tzinfo):
    """The system's local time zone, daylight saving time included."""

    def _offset_seconds(self, dt: datetime) -> int:
        try:
            stamp = _time.mktime(
                (dt.year, dt.month, dt.day, dt.hour, dt.minute, dt.second,
                 dt.weekday(), 0, -1)
            )
            return _time.localtime(stamp).tm_gmtoff
        except (OverflowError, ValueError, OSError):
            return -_time.timezone

    def utcoffset(self, dt: Optional[datetime]) -> timedelta:
        if dt is None:
            return timedelta(seconds=-_time.timezone)
        return timedelta(seconds=self._offset_seconds(dt))

    def dst(self, dt: Optional[datetime]) -> timedelta:
        if dt is None:
            return timedelta(0)
        return timedelta(seconds=self._offset_seconds(dt) + _time.timezone)

    def tzname(self, dt: Optional[datetime]) -> str:
        if dt is None:
            return _time.tzname[0]
        try:
            stamp = _time.mktime(
                (dt.year, dt.month, dt.day, dt.hour, dt.minute, dt.second,
                 dt.weekday(), 0, -1)
            )
            return _time.localtime(stamp).tm_zone
        except (OverflowError, ValueError, OSError):
            return _time.tzname[0]

    def fromutc(self, dt: datetime) -> datetime:
        stamp = (dt.replace(tzinfo=None) - _EPOCH).total_seconds()
        try:
            tm = _time.localtime(stamp)
            return datetime(*tm[:6], dt.microsecond, tzinfo=self)
        except (OverflowError, ValueError, OSError):
            return (dt + timedelta(seconds=-_time.timezone)).replace(tzinfo=self)

    def __repr__(self) -> str:
        return "LocalTimezone()"


LOCAL = _LocalTimezone()

_MIN_YEAR = 1970
_MAX_YEAR = 9999
_MIN_TIMESTAMP = 1_000_000_000
_MAX_TIMESTAMP = 253_402_300_799

_ALL_START = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ALL_END = datetime(9999, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_AGO_RE = re.compile(r"([0-9]+)([hdwmy])")
_LAST_RE = re.compile(r"last-([0-9]+)([dwmy])")
_QUARTER_RE = re.compile(r"([0-9]{4})Q([1-4])")
_CLOCK_RE = re.compile(r"[0-9]{2}:[0-9]{2}")
_INT_RE = re.compile(r"[+-]?[0-9]+")
_RFC3339_RE = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})"
    r"(?:[.,]([0-9]+))?(Z|[+-][0-9]{2}:[0-9]{2})"
)
_RFC3339_MINUTE_RE = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2})()()"
    r"(Z|[+-][0-9]{2}:[0-9]{2})"
)
_DURATION_TERM = r"([0-9]+(?:\.[0-9]*)?|\.[0-9]+)(ns|us|µs|μs|ms|s|m|h)"
_DURATION_RE = re.compile(f"(?:{_DURATION_TERM})+")
_DURATION_TERM_RE = re.compile(_DURATION_TERM)
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_ParsedPoint = tuple[datetime, TimeGranularity]


def _invalid(text: str) -> ValueError:
    return ValueError(f"unrecognised time: {text!r}")


def _is_digits(text: str) -> bool:
    return bool(text) and all(c in "0123456789" for c in text)


def _atoi(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"not an integer: {text!r}")
    return int(text)


def _local(year: int, month: int, day: int, hour: int = 0, minute: int = 0,
           second: int = 0, microsecond: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=LOCAL)


def _now() -> datetime:
    return datetime.now(LOCAL)


def _add_date(dt: datetime, years: int = 0, months: int = 0, days: int = 0) -> datetime:
    """Shift by calendar units, letting overflowing days roll into the next month."""
    total = (dt.year + years) * 12 + (dt.month - 1) + months
    year, month0 = divmod(total, 12)
    day = date(year, month0 + 1, 1) + timedelta(days=dt.day - 1 + days)
    return datetime.combine(day, dt.timetz())


def _first_of_month_shifted(dt: datetime, months: int) -> datetime:
    year, month0 = divmod(dt.year * 12 + dt.month - 1 + months, 12)
    return _local(year, month0 + 1, 1)


def _start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=23, minute=59, second=59, microsecond=999999)


def _end_of_month(dt: datetime, month: Optional[int] = None) -> datetime:
    month = dt.month if month is None else month
    last = calendar.monthrange(dt.year, month)[1]
    return dt.replace(month=month, day=last, hour=23, minute=59, second=59,
                      microsecond=999999)


def _quarter_start_month(dt: datetime) -> int:
    return (dt.month - 1) // 3 * 3 + 1


def _validate(year: int, month: int, day: int, hour: int = 0, minute: int = 0,
              second: int = 0) -> None:
    if not (_MIN_YEAR <= year <= _MAX_YEAR) or not (1 <= month <= 12) or not (1 <= day <= 31):
        raise ValueError("date out of range")
    if not (0 <= hour <= 23) or not (0 <= minute <= 59) or not (0 <= second <= 59):
        raise ValueError("time of day out of range")
    if day > calendar.monthrange(year, month)[1]:
        raise ValueError("day out of range for month")


def _parse_duration(text: str) -> Optional[timedelta]:
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text or not _DURATION_RE.fullmatch(text):
        return None
    seconds = sum(
        float(number) * _DURATION_UNITS[unit]
        for number, unit in _DURATION_TERM_RE.findall(text)
    )
    return timedelta(seconds=sign * seconds)


def _today() -> _ParsedPoint:
    return _start_of_day(_now()), TimeGranularity.DAY


def _yesterday() -> _ParsedPoint:
    return _start_of_day(_add_date(_now(), days=-1)), TimeGranularity.DAY


def _this_week() -> _ParsedPoint:
    now = _now()
    return _start_of_day(_add_date(now, days=-now.weekday())), TimeGranularity.DAY


def _last_week() -> _ParsedPoint:
    now = _now()
    return _start_of_day(_add_date(now, days=-now.weekday() - 7)), TimeGranularity.DAY


_NATURAL: dict[str, Callable[[], _ParsedPoint]] = {
    "now": lambda: (_now(), TimeGranularity.SECOND),
    "today": _today,
    "yesterday": _yesterday,
    "this-week": _this_week,
    "last-week": _last_week,
    "this-month": lambda: (_first_of_month_shifted(_now(), 0), TimeGranularity.MONTH),
    "last-month": lambda: (_first_of_month_shifted(_now(), -1), TimeGranularity.MONTH),
    "this-year": lambda: (_local(_now().year, 1, 1), TimeGranularity.YEAR),
    "last-year": lambda: (_local(_now().year - 1, 1, 1), TimeGranularity.YEAR),
    "all": lambda: (_ZERO_TIME, TimeGranularity.YEAR),
}


def _parse_ago(body: str, original: str) -> _ParsedPoint:
    if body == "0d":
        return _today()
    match = _AGO_RE.fullmatch(body)
    try:
        if match:
            num = int(match.group(1))
            if num <= 0:
                raise _invalid(original)
            unit = match.group(2)
            if unit == "h":
                moment = datetime.now(timezone.utc) - timedelta(hours=num)
                return moment.astimezone(LOCAL), TimeGranularity.HOUR
            now = _now()
            if unit == "d":
                return _add_date(now, days=-num), TimeGranularity.DAY
            if unit == "w":
                return _add_date(now, days=-num * 7), TimeGranularity.DAY
            if unit == "m":
                return _add_date(now, months=-num), TimeGranularity.MONTH
            return _add_date(now, years=-num), TimeGranularity.YEAR

        duration = _parse_duration(body)
        if duration is None:
            raise _invalid(original)
        moment = (datetime.now(timezone.utc) - duration).astimezone(LOCAL)
        hours = duration / timedelta(hours=1)
        if hours < 1:
            return moment, TimeGranularity.SECOND
        if hours < 24:
            return moment, TimeGranularity.HOUR
        return moment, TimeGranularity.DAY
    except (OverflowError, ValueError) as exc:
        raise _invalid(original) from exc


def _parse_rfc3339(text: str) -> Optional[datetime]:
    match = _RFC3339_RE.fullmatch(text) or _RFC3339_MINUTE_RE.fullmatch(text)
    if not match:
        return None
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        zone_hours, zone_minutes = int(zone[1:3]), int(zone[4:6])
        if zone_hours >= 24 or zone_minutes >= 60:
            return None
        tz = timezone(sign * timedelta(hours=zone_hours, minutes=zone_minutes))
    microsecond = int(fraction[:6].ljust(6, "0")) if fraction else 0
    try:
        return datetime(int(year), int(month), int(day), int(hour), int(minute),
                        int(second or 0), microsecond, tzinfo=tz)
    except ValueError:
        return None


def _parse_point(text: str) -> _ParsedPoint:
    """Parse a time point and report its granularity; raise ValueError if invalid."""
    if text == "":
        raise _invalid(text)
    s = text.strip()

    natural = _NATURAL.get(s.lower())
    if natural is not None:
        return natural()

    if s.endswith("-ago"):
        return _parse_ago(s[: -len("-ago")], text)

    quarter = _QUARTER_RE.fullmatch(s)
    if quarter:
        year, q = int(quarter.group(1)), int(quarter.group(2))
        if not _MIN_YEAR <= year <= _MAX_YEAR:
            raise _invalid(text)
        return _local(year, (q - 1) * 3 + 1, 1), TimeGranularity.QUARTER

    if len(s) == 4 and _is_digits(s):
        year = int(s)
        if not _MIN_YEAR <= year <= _MAX_YEAR:
            raise _invalid(text)
        return _local(year, 1, 1), TimeGranularity.YEAR

    if (len(s) == 6 and _is_digits(s)) or (len(s) == 7 and s.count("-") == 1):
        try:
            if len(s) == 6:
                year, month = int(s[:4]), int(s[4:])
            else:
                year_part, month_part = s.split("-")
                year, month = _atoi(year_part), _atoi(month_part)
        except ValueError as exc:
            raise _invalid(text) from exc
        if not (_MIN_YEAR <= year <= _MAX_YEAR) or not (1 <= month <= 12):
            raise _invalid(text)
        return _local(year, month, 1), TimeGranularity.MONTH

    if (len(s) == 8 and _is_digits(s)) or (len(s) == 10 and s.count("-") == 2):
        try:
            if len(s) == 8:
                year, month, day = int(s[:4]), int(s[4:6]), int(s[6:])
            else:
                year, month, day = (_atoi(part) for part in s.split("-"))
            _validate(year, month, day)
        except ValueError as exc:
            raise _invalid(text) from exc
        return _local(year, month, day), TimeGranularity.DAY

    if len(s) == 12 and _is_digits(s):
        year, month, day = int(s[:4]), int(s[4:6]), int(s[6:8])
        hour, minute = int(s[8:10]), int(s[10:])
        try:
            _validate(year, month, day, hour, minute)
        except ValueError as exc:
            raise _invalid(text) from exc
        return _local(year, month, day, hour, minute), TimeGranularity.MINUTE

    if "/" in s:
        parts = s.split("/")
        if len(parts) != 2:
            raise _invalid(text)
        date_part, clock_part = parts
        try:
            if len(date_part) == 8 and _is_digits(date_part):
                year, month, day = int(date_part[:4]), int(date_part[4:6]), int(date_part[6:])
            elif len(date_part) == 10 and date_part.count("-") == 2:
                year, month, day = (_atoi(part) for part in date_part.split("-"))
            else:
                raise _invalid(text)
            _validate(year, month, day)
            if not _CLOCK_RE.fullmatch(clock_part):
                raise _invalid(text)
            hour, minute = (int(part) for part in clock_part.split(":"))
            _validate(year, month, day, hour, minute)
        except ValueError as exc:
            raise _invalid(text) from exc
        return _local(year, month, day, hour, minute), TimeGranularity.MINUTE

    if len(s) == 14 and _is_digits(s):
        year, month, day = int(s[:4]), int(s[4:6]), int(s[6:8])
        hour, minute, second = int(s[8:10]), int(s[10:12]), int(s[12:])
        try:
            _validate(year, month, day, hour, minute, second)
        except ValueError as exc:
            raise _invalid(text) from exc
        return _local(year, month, day, hour, minute, second), TimeGranularity.SECOND

    if _is_digits(s):
        stamp = int(s)
        if not _MIN_TIMESTAMP <= stamp <= _MAX_TIMESTAMP:
            raise _invalid(text)
        try:
            moment = datetime.fromtimestamp(stamp, LOCAL)
        except (OverflowError, ValueError, OSError):
            moment = datetime.fromtimestamp(stamp, timezone.utc)
        return moment, TimeGranularity.SECOND

    if "T" in s and any(c in s for c in "Z+-"):
        moment = _parse_rfc3339(s)
        if moment is not None:
            return moment, TimeGranularity.SECOND

    raise _invalid(text)


def _adjust_start(t: datetime, g: TimeGranularity) -> datetime:
    if g in (TimeGranularity.SECOND, TimeGranularity.MINUTE, TimeGranularity.HOUR):
        return t
    if g is TimeGranularity.MONTH:
        return _start_of_day(t.replace(day=1))
    if g is TimeGranularity.QUARTER:
        return _start_of_day(t.replace(month=_quarter_start_month(t), day=1))
    if g is TimeGranularity.YEAR:
        return _start_of_day(t.replace(month=1, day=1))
    return _start_of_day(t)


def _adjust_end(t: datetime, g: TimeGranularity) -> datetime:
    if g in (TimeGranularity.SECOND, TimeGranularity.MINUTE, TimeGranularity.HOUR):
        return t
    if g is TimeGranularity.MONTH:
        return _end_of_month(t)
    if g is TimeGranularity.QUARTER:
        return _end_of_month(t, _quarter_start_month(t) + 2)
    if g is TimeGranularity.YEAR:
        return _end_of_day(t.replace(month=12, day=31))
    return _end_of_day(t)


def _span(t: datetime, g: TimeGranularity) -> tuple[datetime, datetime]:
    if g in (TimeGranularity.MONTH, TimeGranularity.QUARTER, TimeGranularity.YEAR):
        return _adjust_start(t, g), _adjust_end(t, g)
    return _start_of_day(t), _end_of_day(t)


def time_of(text: str) -> datetime:
    """Parse a time point in any supported format.

    Raises ValueError when the text is not a recognised time.
    """
    return _parse_point(text)[0]


def time_range_of(text: str) -> tuple[datetime, datetime]:
    """Parse a time range and return its (start, end), both inclusive.

    Accepts ``all``, ``last-<n><d|w|m|y>``, two points joined by ``~``, ``,``
    or `` to ``, or a single point widened to the period of its granularity.
    Raises ValueError when the text is not a recognised range.
    """
    if text == "":
        raise _invalid(text)
    s = text.strip()

    if s.lower() == "all":
        return _ALL_START, _ALL_END

    last = _LAST_RE.fullmatch(s)
    if last:
        num = int(last.group(1))
        if num <= 0:
            raise _invalid(text)
        now = _now()
        unit = last.group(2)
        try:
            if unit == "d":
                shifted = _add_date(now, days=-num)
            elif unit == "w":
                shifted = _add_date(now, days=-num * 7)
            elif unit == "m":
                shifted = _add_date(now, months=-num)
            else:
                shifted = _add_date(now, years=-num)
        except (OverflowError, ValueError) as exc:
            raise _invalid(text) from exc
        return _start_of_day(shifted), _end_of_day(now)

    for separator in ("~", ",", " to "):
        if separator not in s:
            continue
        parts = s.split(separator)
        if len(parts) != 2:
            continue
        try:
            start_time, start_gran = _parse_point(parts[0].strip())
            end_time, end_gran = _parse_point(parts[1].strip())
        except ValueError:
            continue
        start = _adjust_start(start_time, start_gran)
        end = _adjust_end(end_time, end_gran)
        if start > end:
            start = _adjust_start(end_time, end_gran)
            end = _adjust_end(start_time, start_gran)
        return start, end

    return _span(*_parse_point(s))


def perfect_time_format(start: datetime, end: datetime) -> str:
    """Return the shortest strftime format that tells the two times apart.

    An end exactly at midnight counts as the last second of the day before.
    """
    end_time = end
    if (end_time.hour, end_time.minute, end_time.second, end_time.microsecond) == (0, 0, 0, 0):
        end_time = end_time - timedelta(seconds=1)

    if start.year != end_time.year:
        return "%Y-%m-%d %H:%M:%S"
    if start.timetuple().tm_yday != end_time.timetuple().tm_yday:
        return "%m-%d %H:%M:%S"
    return "%H:%M:%S"