# feedsync/utils/test_datetime_utils.py
"""
Date/time utility tests

Usage: python -m pytest feedsync/utils/test_datetime_utils.py -v
"""

import pytest
from datetime import datetime, date, timezone, timedelta
from feedsync.utils.datetime_utils import DateTimeUtils

def test_parse_iso_datetime():
    """Every supported ISO format ends up as aware UTC"""
    test_cases = [
        "2024-01-15T10:30:00Z",
        "2024-01-15T10:30:00+09:00",
        "2024-01-15T10:30:00.123456Z",
        "2024-01-15T10:30:00"
    ]

    for iso_string in test_cases:
        dt = DateTimeUtils.parse_iso_datetime(iso_string)
        assert isinstance(dt, datetime)
        assert dt.tzinfo == timezone.utc

def test_parse_iso_datetime_rejects_garbage():
    with pytest.raises(ValueError):
        DateTimeUtils.parse_iso_datetime("")
    with pytest.raises(ValueError):
        DateTimeUtils.parse_iso_datetime("not-a-date")

def test_iso_string_keeps_microseconds():
    """Cursors depend on exact round trips"""
    dt = datetime(2024, 1, 15, 10, 30, 0, 123456, tzinfo=timezone.utc)
    iso = DateTimeUtils.to_iso_string(dt)
    assert iso == "2024-01-15T10:30:00.123456Z"
    assert DateTimeUtils.parse_iso_datetime(iso) == dt

def test_for_firestore():
    test_data = {
        'day': date(2020, 1, 15),
        'timestamp': datetime(2024, 1, 15, 10, 30),
        'nested': {'event_date': date(2023, 12, 25)},
        'list_data': [{'created_at': datetime(2024, 1, 1)}]
    }

    converted = DateTimeUtils.for_firestore(test_data)

    assert isinstance(converted['day'], datetime)
    assert converted['day'].tzinfo == timezone.utc
    assert converted['timestamp'].tzinfo == timezone.utc
    assert isinstance(converted['nested']['event_date'], datetime)
    assert converted['list_data'][0]['created_at'].tzinfo == timezone.utc

def test_from_firestore_normalizes_offsets():
    kst = timezone(timedelta(hours=9))
    data = {'created_at': datetime(2024, 1, 15, 19, 30, 0, 5, tzinfo=kst), 'tags': ['a']}

    converted = DateTimeUtils.from_firestore(data)

    assert converted['created_at'] == datetime(2024, 1, 15, 10, 30, 0, 5, tzinfo=timezone.utc)
    assert type(converted['created_at']) is datetime
    assert converted['tags'] == ['a']

def test_package_exports_only_the_utility_class():
    import feedsync.utils
    assert feedsync.utils.__all__ == ['DateTimeUtils']
    assert not hasattr(feedsync.utils, 'parse_iso')
