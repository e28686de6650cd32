from datetime import datetime, timezone
import zoneinfo
from .config import settings

TZ = zoneinfo.ZoneInfo(settings.CHALLENGE_TZ)

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def season_for(dt: datetime) -> int:
    """Calendar year of `dt` in the club timezone, not UTC."""
    return as_utc(dt).astimezone(TZ).year
