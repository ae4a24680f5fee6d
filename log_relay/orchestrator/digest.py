"""
Daily digest scheduling.

All dates and hours are evaluated in UTC.
"""
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

DEFAULT_REPORT_HOUR = 16
REPORT_WINDOW = timedelta(hours=24)


def is_digest_due(last_report_date: Optional[date], now: datetime, report_hour: int = DEFAULT_REPORT_HOUR) -> bool:
    """
    Check whether the daily digest should be sent.

    Args:
        last_report_date: Date of the last digest, None if never sent
        now: Current time
        report_hour: Hour of day from which the digest may be sent

    Returns:
        True if no digest went out today and the report hour has passed
    """
    return last_report_date != now.date() and now.hour >= report_hour


def report_window(now: datetime) -> Tuple[datetime, datetime]:
    """Trailing window covered by a digest sent at ``now``."""
    return now - REPORT_WINDOW, now
