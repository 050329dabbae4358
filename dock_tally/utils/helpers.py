"""
Helper utilities
"""
from datetime import datetime, timezone
from typing import Any, List, Optional


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string for a datetime, treating naive values as UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_isoformat(value: Optional[str]) -> Optional[datetime]:
    """Inverse of isoformat()"""
    if not value:
        return None
    return datetime.fromisoformat(value)


def chunk_list(lst: List, chunk_size: int) -> List[List]:
    """Split list into chunks"""
    return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]


def as_text(value: Any) -> str:
    """Stringify a cell value, mapping None to an empty string"""
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)
