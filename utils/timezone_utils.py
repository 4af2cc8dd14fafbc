# utils/timezone_utils.py
from datetime import datetime, date, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from fastapi import Header

# UTC-12:00 .. UTC+14:00
MAX_OFFSET_MINUTES = 14 * 60

def parse_timezone_offset(offset_str: Optional[str]) -> int:
    """
    Minutes east of UTC from an offset header.
    Accepts "300", "-480", "+05:30" or an IANA zone such as "Europe/Berlin".
    Anything unreadable counts as UTC.
    """
    if not offset_str:
        return 0

    text = offset_str.strip()
    try:
        if text.lstrip('+-').isdigit():
            minutes = int(text)
        elif ':' in text:
            sign = -1 if text.startswith('-') else 1
            hours, _, mins = text.lstrip('+-').partition(':')
            minutes = sign * (int(hours) * 60 + int(mins or 0))
        else:
            utc_offset = utc_now().astimezone(ZoneInfo(text)).utcoffset()
            minutes = int(utc_offset.total_seconds() // 60)
    except (ValueError, ZoneInfoNotFoundError):
        print(f"⚠️ Unreadable timezone '{offset_str}', using UTC")
        return 0

    if abs(minutes) > MAX_OFFSET_MINUTES:
        print(f"⚠️ Timezone offset {minutes} out of range, using UTC")
        return 0
    return minutes

def parse_workout_date(value: Union[str, date, datetime]) -> date:
    """
    Parse a calendar date.

    Accepts a date, a datetime, "YYYY-MM-DD" or an ISO datetime string
    (the time part is dropped). Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Not a date: {value!r}")

    text = value.strip()
    if 'T' not in text:
        return datetime.strptime(text, '%Y-%m-%d').date()

    return datetime.fromisoformat(text.replace('Z', '+00:00')).date()

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def get_user_today(timezone_offset: int = 0) -> date:
    """The calendar date the user is currently living in"""
    return (utc_now() + timedelta(minutes=timezone_offset)).date()

async def get_timezone_offset(
    x_timezone_offset: Optional[str] = Header(None),
    x_timezone_string: Optional[str] = Header(None)
) -> int:
    """Dependency: the caller's UTC offset in minutes, 0 when no header is sent"""
    return parse_timezone_offset(x_timezone_offset or x_timezone_string)
