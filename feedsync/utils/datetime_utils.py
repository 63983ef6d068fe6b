# feedsync/utils/datetime_utils.py
"""
Central date/time handling for the whole project.

Goals:
1. Every timestamp is timezone-aware UTC
2. Values read from / written to Firestore are normalized the same way
3. One ISO format for cursors and JSON responses
"""

import logging
from datetime import datetime, date, timezone, time
from typing import Any

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)


class DateTimeUtils:
    """Static helpers for date/time conversion."""

    @staticmethod
    def now() -> datetime:
        """Current time as a UTC timezone-aware datetime."""
        return datetime.now(timezone.utc)

    @staticmethod
    def parse_iso_datetime(iso_string: str) -> datetime:
        """
        Parses an ISO string into a UTC datetime.

        Supported formats:
        - 2024-01-15T10:30:00Z
        - 2024-01-15T10:30:00+09:00
        - 2024-01-15T10:30:00.123456Z
        - 2024-01-15T10:30:00 (assumed UTC)
        """
        try:
            if not iso_string:
                raise ValueError("cannot parse an empty string")

            if iso_string.endswith('Z'):
                iso_string = iso_string[:-1] + '+00:00'

            dt = dateutil_parser.isoparse(iso_string)

            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)

            return dt.astimezone(timezone.utc)

        except Exception as e:
            logger.error(f"ISO datetime parsing failed: {iso_string} - {e}")
            raise ValueError(f"invalid ISO datetime: {iso_string}")

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        """datetime -> ISO string with a 'Z' suffix, microseconds preserved."""
        try:
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            else:
                dt = dt.astimezone(timezone.utc)

            return dt.isoformat().replace('+00:00', 'Z')

        except Exception as e:
            logger.error(f"ISO string conversion failed: {dt} - {e}")
            raise ValueError(f"cannot convert to ISO string: {dt}")

    @staticmethod
    def for_firestore(obj: Any) -> Any:
        """
        Normalizes date/time values before they are written.

        - date -> datetime (00:00:00 UTC)
        - naive datetime -> aware datetime (UTC)
        - dict/list are converted recursively
        """
        if isinstance(obj, datetime):
            if obj.tzinfo is None:
                return obj.replace(tzinfo=timezone.utc)
            return obj.astimezone(timezone.utc)

        elif isinstance(obj, date):
            return datetime.combine(obj, time.min).replace(tzinfo=timezone.utc)

        elif isinstance(obj, dict):
            return {k: DateTimeUtils.for_firestore(v) for k, v in obj.items()}

        elif isinstance(obj, list):
            return [DateTimeUtils.for_firestore(item) for item in obj]

        return obj

    @staticmethod
    def from_firestore(obj: Any) -> Any:
        """
        Normalizes values read from the store.

        - Firestore timestamps (DatetimeWithNanoseconds) and datetimes -> plain UTC datetime
        - dict/list are converted recursively
        """
        try:
            if isinstance(obj, datetime):
                if obj.tzinfo is None:
                    obj = obj.replace(tzinfo=timezone.utc)
                obj = obj.astimezone(timezone.utc)
                # drop the nanosecond subclass so values compare and serialize like datetime
                return datetime(obj.year, obj.month, obj.day, obj.hour, obj.minute, obj.second,
                                obj.microsecond, tzinfo=timezone.utc)

            elif isinstance(obj, dict):
                return {k: DateTimeUtils.from_firestore(v) for k, v in obj.items()}

            elif isinstance(obj, list):
                return [DateTimeUtils.from_firestore(item) for item in obj]

            return obj

        except Exception as e:
            logger.error(f"Firestore read conversion failed: {obj} ({type(obj)}) - {e}")
            return obj
