"""
Time helpers.

Timestamps are stored as naive UTC: MySQL DATETIME and SQLite both drop the
timezone, so comparisons against database values must be naive as well.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current time as naive UTC, comparable with values read from the database."""
    return datetime.now(UTC).replace(tzinfo=None)
