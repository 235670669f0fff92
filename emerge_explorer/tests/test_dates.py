import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from emerge_explorer.options import TimeFilter
from emerge_explorer.scanner.dates import (
    DateParser,
    Timespan,
    format_duration,
)

THEN = 1522713600  # 2018-04-03T00:00:00Z
NOW = datetime(2020, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
HOUR, DAY, MIN = 3600, 86400, 60


@pytest.mark.parametrize(
    "text,expected",
    [
        ("100", 100),
        ("1700000000", 1700000000),
        ("100.5", Decimal("100.5")),
        ("abc", None),
        ("", None),
    ],
)
def test_parse_epoch(text, expected):
    assert DateParser.parse_epoch(text) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        (" 1522713600 ", THEN),
        (" 2018-04-03 ", THEN),
        ("2018-04-03 01:01", THEN + HOUR + MIN),
        ("2018-04-03 01:01:01", THEN + HOUR + MIN + 1),
        ("2018-04-03T01:01:01", THEN + HOUR + MIN + 1),
    ],
)
def test_parse_absolute_dates(text, expected):
    assert DateParser.parse_date(text, timezone.utc) == expected


@pytest.mark.parametrize("offset", [HOUR, -HOUR, 90 * MIN, -90 * MIN])
def test_parse_date_in_other_timezone(offset):
    tz = timezone(timedelta(seconds=offset))
    assert DateParser.parse_date("2018-04-03T00:00", tz) == THEN - offset


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1 hour, 3 days  45sec", NOW - timedelta(hours=1, days=3, seconds=45)),
        ("5 weeks", NOW - timedelta(weeks=5)),
        ("10d", NOW - timedelta(days=10)),
        ("2 months", datetime(2020, 4, 15, 12, 0, 0, tzinfo=timezone.utc)),
        ("7 months", datetime(2019, 11, 15, 12, 0, 0, tzinfo=timezone.utc)),
        ("1y", datetime(2019, 6, 15, 12, 0, 0, tzinfo=timezone.utc)),
    ],
)
def test_parse_relative_dates(text, expected):
    assert DateParser.parse_date(text, now=NOW) == int(expected.timestamp())


@pytest.mark.parametrize(
    "text",
    [
        "",
        "junk2018-04-03T01:01:01",
        "2018-04-03T01:01:01junk",
        "152271000o",
        "1 day 3 centuries",
        "a while ago",
    ],
)
def test_parse_date_failures(text):
    with pytest.raises(ValueError):
        DateParser.parse_date(text, now=NOW)


@pytest.mark.parametrize(
    "row",
    [
        # input             year       month      week       day
        "2019-01-01T00:00:00 2020-01-01 2019-02-01 2019-01-07 2019-01-02",
        "2019-01-01T23:59:59 2020-01-01 2019-02-01 2019-01-07 2019-01-02",
        "2019-01-30T00:00:00 2020-01-01 2019-02-01 2019-02-04 2019-01-31",
        "2019-01-31T00:00:00 2020-01-01 2019-02-01 2019-02-04 2019-02-01",
        "2019-12-31T00:00:00 2020-01-01 2020-01-01 2020-01-06 2020-01-01",
        "2020-02-28T12:34:00 2021-01-01 2020-03-01 2020-03-02 2020-02-29",
    ],
)
@pytest.mark.parametrize("offset", [timedelta(0), timedelta(hours=5), -timedelta(hours=10, minutes=30)])
def test_timespan_next(row, offset):
    tz = timezone(offset)
    base_s, *expected = row.split()
    base = int(datetime.fromisoformat(base_s).replace(tzinfo=tz).timestamp())

    for timespan, day in zip([Timespan.YEAR, Timespan.MONTH, Timespan.WEEK, Timespan.DAY], expected):
        boundary = datetime.fromisoformat(day).replace(tzinfo=tz)
        assert timespan.next(base, tz) == int(boundary.timestamp()), f"{base_s} {timespan}"


@pytest.mark.parametrize(
    "timespan,header",
    [
        (Timespan.YEAR, "2019"),
        (Timespan.MONTH, "2019-01"),
        (Timespan.WEEK, "2019-01"),
        (Timespan.DAY, "2019-01-01"),
    ],
)
def test_timespan_header(timespan, header):
    assert timespan.header(1546300800) == header


def test_timespan_parse():
    assert Timespan.parse("d") is Timespan.DAY
    with pytest.raises(ValueError):
        Timespan.parse("x")


@pytest.mark.parametrize(
    "secs,hms,s",
    [
        (0, "0", "0"),
        (1, "1", "1"),
        (59, "59", "59"),
        (60, "1:00", "60"),
        (61, "1:01", "61"),
        (3599, "59:59", "3599"),
        (3600, "1:00:00", "3600"),
        (359999, "99:59:59", "359999"),
        (360000, "100:00:00", "360000"),
        (-1, "?", "?"),
        (-123456, "?", "?"),
        (None, "?", "?"),
    ],
)
def test_format_duration(secs, hms, s):
    assert format_duration(secs, "hms") == hms
    assert format_duration(secs, "s") == s


def test_format_duration_rejects_unknown_style():
    with pytest.raises(ValueError):
        format_duration(10, "ms")


def test_time_filter_from_strings():
    time_filter = TimeFilter.from_strings("2018-04-03", "1 day", now=NOW)
    assert time_filter.start_time == THEN
    assert time_filter.end_time == int((NOW - timedelta(days=1)).timestamp())
    assert time_filter.before_start(THEN - 1)
    assert not time_filter.after_end(THEN)

    assert TimeFilter.from_strings() == TimeFilter()
    with pytest.raises(ValueError):
        TimeFilter.from_strings(end="tomorrow")
