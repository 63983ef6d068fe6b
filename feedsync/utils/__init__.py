# feedsync/utils/__init__.py
"""
Utilities shared across the project.
"""

from .datetime_utils import DateTimeUtils

__all__ = ['DateTimeUtils']
