import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum

import logging

logger = logging.getLogger(__name__)

ABSOLUTE_DATE = re.compile(
    r"^(?P<year>[0-9]{4})-(?P<month>[0-9]{1,2})-(?P<day>[0-9]{1,2})"
    r"(?:[T ](?P<hour>[0-9]{1,2}):(?P<minute>[0-9]{2})(?::(?P<second>[0-9]{2}))?)?$"
)
SPAN_TOKEN = re.compile(r"[0-9]+|[a-z]+")

SPAN_UNITS = {
    "y": "years",
    "year": "years",
    "years": "years",
    "m": "months",
    "month": "months",
    "months": "months",
    "w": timedelta(weeks=1),
    "week": timedelta(weeks=1),
    "weeks": timedelta(weeks=1),
    "d": timedelta(days=1),
    "day": timedelta(days=1),
    "days": timedelta(days=1),
    "h": timedelta(hours=1),
    "hour": timedelta(hours=1),
    "hours": timedelta(hours=1),
    "min": timedelta(minutes=1),
    "mins": timedelta(minutes=1),
    "minute": timedelta(minutes=1),
    "minutes": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "sec": timedelta(seconds=1),
    "secs": timedelta(seconds=1),
    "second": timedelta(seconds=1),
    "seconds": timedelta(seconds=1),
}


class DateParser:
    """Parses log epochs and user-supplied date bounds."""

    @classmethod
    def parse_epoch(cls, text):
        """
        Parse the leading epoch of an emerge.log line.

        Returns an int for whole seconds, a Decimal when a fractional part is
        present, or None if the text is not a timestamp.
        """
        if not text or not text[0].isdigit():
            return None
        if "." in text:
            try:
                return Decimal(text)
            except InvalidOperation:
                return None
        try:
            return int(text)
        except ValueError:
            return None

    @classmethod
    def parse_date(cls, text, tz=timezone.utc, now=None):
        """
        Parse a user-supplied date bound into a unix timestamp.

        Accepts a unix timestamp, an absolute "YYYY-MM-DD[ HH:MM[:SS]]" date
        (interpreted in `tz`), or a relative span such as "1 hour, 3 days 45sec"
        counted back from `now`.
        """
        s = text.strip()
        for parse in (cls._parse_unix, cls._parse_absolute, cls._parse_ago):
            try:
                return parse(s, tz, now)
            except ValueError as e:
                logger.debug(f"{s!r}: {parse.__name__} failed: {e}")
        raise ValueError(f"Couldn't parse {s!r} as a date or timestamp")

    @staticmethod
    def _parse_unix(s, tz, now):
        return int(s)

    @staticmethod
    def _parse_absolute(s, tz, now):
        match = ABSOLUTE_DATE.match(s)
        if not match:
            raise ValueError("not an absolute date")
        parts = {k: int(v) for k, v in match.groupdict().items() if v is not None}
        dt = datetime(tzinfo=tz, **parts)
        return int(dt.timestamp())

    @staticmethod
    def _parse_ago(s, tz, now):
        if not all(c.isalnum() or c in " ," for c in s):
            raise ValueError("illegal character")
        tokens = SPAN_TOKEN.findall(s)
        if not tokens:
            raise ValueError("no token found")

        current = now or datetime.now(timezone.utc)
        it = iter(tokens)
        for token in it:
            num = int(token)
            unit = SPAN_UNITS.get(next(it, ""))
            if unit is None:
                raise ValueError(f"bad span after {num}")
            if unit == "years":
                current = current.replace(year=current.year - num)
            elif unit == "months":
                month_index = current.year * 12 + current.month - 1 - num
                current = current.replace(
                    year=month_index // 12, month=month_index % 12 + 1
                )
            else:
                current -= num * unit
        return int(current.timestamp())


class Timespan(Enum):
    YEAR = "y"
    MONTH = "m"
    WEEK = "w"
    DAY = "d"

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                "Valid values are y(ear), m(onth), w(eek), d(ay)"
            ) from None

    def next(self, ts, tz=timezone.utc):
        """Given a unix timestamp, return the start of the next period in `tz`."""
        d = datetime.fromtimestamp(int(ts), tz).date()
        if self is Timespan.YEAR:
            d2 = d.replace(year=d.year + 1, month=1, day=1)
        elif self is Timespan.MONTH:
            if d.month == 12:
                d2 = d.replace(year=d.year + 1, month=1, day=1)
            else:
                d2 = d.replace(month=d.month + 1, day=1)
        elif self is Timespan.WEEK:
            d2 = d + timedelta(days=7 - d.weekday())
        else:
            d2 = d + timedelta(days=1)
        return int(datetime(d2.year, d2.month, d2.day, tzinfo=tz).timestamp())

    def header(self, ts, tz=timezone.utc):
        dt = datetime.fromtimestamp(int(ts), tz)
        if self is Timespan.YEAR:
            return f"{dt.year}"
        elif self is Timespan.MONTH:
            return f"{dt.year}-{dt.month:02}"
        elif self is Timespan.WEEK:
            year, week, _ = dt.isocalendar()
            return f"{year}-{week:02}"
        return f"{dt.year}-{dt.month:02}-{dt.day:02}"


def format_duration(secs, style="hms"):
    """Format a duration as h:mm:ss (dropping empty leading units) or seconds."""
    if secs is None or secs < 0:
        return "?"
    secs = int(secs)
    if style == "s":
        return str(secs)
    if style != "hms":
        raise ValueError(f"Invalid duration style: {style}")
    h, rest = divmod(secs, 3600)
    m, s = divmod(rest, 60)
    if h > 0:
        return f"{h}:{m:02}:{s:02}"
    elif m > 0:
        return f"{m}:{s:02}"
    return f"{s}"
