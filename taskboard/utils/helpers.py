# taskboard/utils/helpers.py
from datetime import datetime, timezone
from typing import Optional, Dict, Any


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to aware UTC.

    Naive values are taken to already be UTC; this is also how SQLite
    hands stored timestamps back.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def clean_dict(data: Dict[str, Any], remove_none: bool = True, remove_empty: bool = False) -> Dict[str, Any]:
    """
    Clean dictionary by removing None values and optionally empty values

    Args:
        data: Dictionary to clean
        remove_none: Remove None values
        remove_empty: Remove empty strings, lists, dicts
    """
    cleaned = {}

    for key, value in data.items():
        if remove_none and value is None:
            continue
        if remove_empty and value in ("", [], {}):
            continue
        cleaned[key] = value

    return cleaned


def truncate_string(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate string to specified length"""
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
