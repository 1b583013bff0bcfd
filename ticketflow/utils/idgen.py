"""ID Generation Utilities"""
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix

    Examples:
        >>> generate_id('TKT')
        'TKT-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]

    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_ticket_id() -> str:
    """Generate ticket ID"""
    return generate_id("TID")


def generate_functionality_id() -> str:
    """Generate functionality (workflow owner) ID"""
    return generate_id("FN")


def generate_notification_id() -> str:
    """Generate notification ID"""
    return generate_id("NTF")


def format_ticket_number(prefix: str, year: int, sequence: int) -> str:
    """
    Format the human-facing ticket number

    >>> format_ticket_number('TKT', 2026, 42)
    'TKT-2026-000042'
    """
    return f"{prefix}-{year}-{sequence:06d}"


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing

    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
