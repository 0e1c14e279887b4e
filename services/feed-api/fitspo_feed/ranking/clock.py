"""Calendar-day helpers. The ranking core never reads the clock itself."""
from datetime import date, datetime, time, timezone, tzinfo
from zoneinfo import ZoneInfo


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def _aware(as_of: datetime) -> datetime:
    return as_of if as_of.tzinfo is not None else as_of.replace(tzinfo=timezone.utc)


def local_day(as_of: datetime, tz: tzinfo) -> date:
    return _aware(as_of).astimezone(tz).date()


def start_of_day(as_of: datetime, tz: tzinfo) -> datetime:
    """Midnight of as_of's calendar day in tz, as an aware datetime."""
    return datetime.combine(local_day(as_of, tz), time.min, tzinfo=tz)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
