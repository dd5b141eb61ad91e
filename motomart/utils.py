"""
Utility functions for timestamps and loose numeric/text coercion.
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

# Largest value SQLite can store in an INTEGER column
SQLITE_MAX_INT = 2 ** 63 - 1


def now_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def iso_from_now(**delta) -> str:
    """UTC ISO timestamp offset from now, e.g. iso_from_now(days=-30)."""
    return (datetime.now(timezone.utc) + timedelta(**delta)).isoformat()


def current_year() -> int:
    return datetime.now(timezone.utc).year


def clean_text(s: Optional[str]) -> str:
    """Clean and normalize text by removing extra whitespace."""
    if not s:
        return ""
    s = re.sub(r"\s+", " ", str(s))
    return s.strip()


def to_int(value: Any) -> Optional[int]:
    """Safely convert a form value to int."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not re.fullmatch(r"-?\d+", text):
        return None
    return int(text)


def to_float(value: Any) -> Optional[float]:
    """Safely convert a form value to float."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return number if number == number and number not in (float("inf"), float("-inf")) else None


def extract_digits(value: Any) -> Optional[int]:
    """
    Pull the integer out of free text such as "150cc" or "1,000 CC".

    Returns None when the text holds no digits.
    """
    if value is None:
        return None
    digits = re.sub(r"[^0-9]", "", str(value))
    return int(digits) if digits else None
