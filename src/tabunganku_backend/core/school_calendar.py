'''
The school runs on a fixed UTC offset (Asia/Jakarta has no DST). Dates the
users pick and weekdays they are held to are interpreted in school time.
'''
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from ..common.config import settings
from ..database.db_enums import DayOfWeek


def school_timezone() -> timezone:
    return timezone(timedelta(hours=settings.SCHOOL_UTC_OFFSET_HOURS))


def school_now(now: Optional[datetime] = None) -> datetime:
    """`now` (aware, any zone) expressed in school time; defaults to the clock."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(school_timezone())


def school_weekday(now: Optional[datetime] = None) -> DayOfWeek:
    return list(DayOfWeek)[school_now(now).weekday()]


def day_window_utc(day: date) -> tuple[datetime, datetime]:
    """[00:00, next 00:00) of `day` in school time, converted to UTC."""
    start = datetime.combine(day, time.min, tzinfo=school_timezone())
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
