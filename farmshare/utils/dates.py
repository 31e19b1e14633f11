from datetime import datetime, timezone
from typing import Optional, Union

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None

def parse_ts(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Horodatage PostgREST (ISO 8601, « Z » accepté) -> datetime UTC aware. None si illisible."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
