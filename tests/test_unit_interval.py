"""
Closed-interval model: both ends count as rental days, so sharing a
handover day is an overlap.
"""

from datetime import date, datetime

import pytest

from rental_engine.exceptions import InvalidInterval
from rental_engine.models.interval import Interval, as_date, overlaps


def iv(a, b):
    return Interval.parse(a, b)


CASES = [
    ("2024-06-10", "2024-06-15", "2024-06-15", "2024-06-20", True),   # shared boundary day
    ("2024-06-10", "2024-06-15", "2024-06-16", "2024-06-20", False),  # next day
    ("2024-06-10", "2024-06-15", "2024-06-11", "2024-06-12", True),   # contained
    ("2024-06-10", "2024-06-10", "2024-06-10", "2024-06-10", True),   # same single day
    ("2024-06-01", "2024-06-05", "2024-07-01", "2024-07-05", False),
]


@pytest.mark.parametrize("a1,a2,b1,b2,expected", CASES)
def test_overlap_is_symmetric(a1, a2, b1, b2, expected):
    a, b = iv(a1, a2), iv(b1, b2)
    assert overlaps(a, b) is expected
    assert overlaps(b, a) is expected


def test_interval_overlaps_itself():
    a = iv("2024-06-10", "2024-06-15")
    assert overlaps(a, a)
    assert a.overlaps(a)


def test_start_after_end_rejected():
    with pytest.raises(InvalidInterval):
        Interval(date(2024, 6, 15), date(2024, 6, 10))


def test_forged_interval_rejected_before_comparison():
    good = iv("2024-06-10", "2024-06-15")
    bad = iv("2024-06-01", "2024-06-02")
    object.__setattr__(bad, "start", date(2024, 6, 30))
    with pytest.raises(InvalidInterval):
        overlaps(good, bad)


def test_parse_accepts_iso_with_time_and_datetimes():
    a = Interval.parse("2024-06-10T09:30:00", datetime(2024, 6, 12, 18, 0))
    assert a == Interval(date(2024, 6, 10), date(2024, 6, 12))
    assert a.days == 3
    assert a.contains("2024-06-12")
    assert not a.contains(date(2024, 6, 13))


@pytest.mark.parametrize("bad", ["10/06/2024", "", "tomorrow", 20240610, None])
def test_unparseable_dates(bad):
    with pytest.raises(InvalidInterval):
        as_date(bad)
