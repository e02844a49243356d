# app/core/clock.py
import datetime as dt


def utc_now() -> dt.datetime:
    """
    Get current UTC datetime with timezone information.
    """
    return dt.datetime.now(dt.timezone.utc)
