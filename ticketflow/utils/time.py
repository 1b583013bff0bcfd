"""Time Utilities - UTC timestamps and formatting"""
from datetime import datetime, timezone
from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """Parse ISO 8601 string to a UTC datetime"""
    dt = date_parser.isoparse(iso_string)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def millis_timestamp(dt: datetime) -> int:
    """Milliseconds since epoch, used to prefix stored file names"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
