"""Small helpers shared by services and response builders."""

import secrets
import time
from datetime import UTC, datetime
from decimal import Decimal


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to the naive UTC storage convention."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


def generate_id(prefix: str = "") -> str:
    """Generate a unique id.

    Format: [prefix_] + timestamp_ms + _ + random_hex(10)
    Example: tx_1702345678000_3fa91c0b7e
    """
    body = f"{now_ms()}_{secrets.token_hex(5)}"
    return f"{prefix}_{body}" if prefix else body


def generate_tx_hash() -> str:
    """Generate a synthetic 32-byte result hash."""
    return f"0x{secrets.token_hex(32)}"


def format_utc_datetime(dt: datetime | None) -> str | None:
    """Format datetime to ISO string with Z suffix for UTC.

    Stored datetimes are naive UTC; the Z suffix lets clients parse them as UTC.

    Args:
        dt: datetime object (assumed UTC) or None

    Returns:
        ISO format string with Z suffix (e.g., "2026-01-10T10:30:00Z") or None
    """
    if dt is None:
        return None
    return f"{dt.isoformat()}Z"


def format_amount(amount: Decimal) -> str:
    """Render a Decimal without exponent or trailing zeros ("1E+3" -> "1000")."""
    normalized = amount.normalize()
    text = format(normalized, "f")
    return text if text != "-0" else "0"
