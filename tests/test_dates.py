from datetime import datetime, timedelta, timezone

import pytest

from feedwire.utils.dates import to_utc


def test_to_utc_converts_offsets():
    value = to_utc(datetime(2024, 5, 1, 10, 0, tzinfo=timezone(timedelta(hours=5))))
    assert value == datetime(2024, 5, 1, 5, 0, tzinfo=timezone.utc)
    assert value.utcoffset() == timedelta(0)


def test_to_utc_treats_naive_values_as_utc():
    assert to_utc(datetime(2024, 5, 1, 5, 0)) == datetime(2024, 5, 1, 5, 0, tzinfo=timezone.utc)
    assert to_utc("2024-05-01 05:00:00.000000") == datetime(2024, 5, 1, 5, 0, tzinfo=timezone.utc)
    assert to_utc("2024-05-01T10:00:00+05:00") == datetime(2024, 5, 1, 5, 0, tzinfo=timezone.utc)


def test_to_utc_rejects_garbage():
    with pytest.raises(ValueError):
        to_utc("not a date")
