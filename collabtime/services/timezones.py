# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Timezone arithmetic, pure computation, no side effects.

Working-hours windows are half-open [start, end) in whole hours of the
member's own timezone. start > end wraps past midnight. start == end is a
window that never opens ("always off"); every function here agrees on that.
Each function takes an optional ``now`` (aware datetime) so callers and tests
can pin the instant; it defaults to the current UTC time.
"""

import math
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from collabtime.core.config import settings

HOURS_IN_DAY = 24

COMMON_TIMEZONES: tuple[str, ...] = (
    "Pacific/Honolulu",
    "America/Anchorage",
    "America/Los_Angeles",
    "America/Denver",
    "America/Chicago",
    "America/New_York",
    "America/Sao_Paulo",
    "UTC",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Africa/Cairo",
    "Europe/Moscow",
    "Asia/Dubai",
    "Asia/Kolkata",
    "Asia/Bangkok",
    "Asia/Singapore",
    "Asia/Shanghai",
    "Asia/Tokyo",
    "Australia/Sydney",
    "Pacific/Auckland",
)


@lru_cache(maxsize=256)
def get_zone(name: str) -> ZoneInfo:
    """Resolve an IANA name. Raises ValueError for unknown zones."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone '{name}'")


def _now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now


def _check_hour(hour: int) -> None:
    if not 0 <= hour < HOURS_IN_DAY:
        raise ValueError(f"Hour must be in [0, 24), got {hour}")


# ── Conversion ──

def convert_hour_to_timezone(
    hour: int,
    from_tz: str,
    to_tz: str,
    now: Optional[datetime] = None,
) -> int:
    """
    Map an hour-of-day in from_tz to the hour-of-day in to_tz, for today's
    date in from_tz (so the DST offset in force right now is used).
    Zones with fractional offsets floor to the containing hour.
    """
    _check_hour(hour)
    source = get_zone(from_tz)
    target = get_zone(to_tz)
    today = _now(now).astimezone(source).date()
    local = datetime(today.year, today.month, today.day, hour, tzinfo=source)
    return local.astimezone(target).hour


def local_hour(tz: str, now: Optional[datetime] = None) -> int:
    return _now(now).astimezone(get_zone(tz)).hour


# ── Working window ──

def is_hour_in_window(hour: int, start: int, end: int) -> bool:
    if start == end:
        return False
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def is_currently_working(
    tz: str, start: int, end: int, now: Optional[datetime] = None
) -> bool:
    """True iff the current local hour in tz falls inside [start, end)."""
    return is_hour_in_window(local_hour(tz, now), start, end)


def get_minutes_until_available(
    tz: str, start: int, end: int, now: Optional[datetime] = None
) -> Optional[int]:
    """
    Minutes until the window next opens, 0 when inside it.
    None for a degenerate (start == end) window, which never opens.
    """
    _check_hour(start)
    _check_hour(end)
    current = _now(now)
    if start == end:
        return None
    if is_currently_working(tz, start, end, current):
        return 0

    zone = get_zone(tz)
    local = current.astimezone(zone)
    opening = local.replace(hour=start, minute=0, second=0, microsecond=0)
    if opening <= local:
        opening += timedelta(days=1)
    # Compare in UTC so a DST change before the opening is counted.
    seconds = (opening.astimezone(timezone.utc) - current).total_seconds()
    return max(0, math.ceil(seconds / 60))


def get_current_time_position(tz: str, now: Optional[datetime] = None) -> float:
    """Percentage of the local day elapsed in tz, used for the "now" marker."""
    local = _now(now).astimezone(get_zone(tz))
    return ((local.hour + local.minute / 60) / HOURS_IN_DAY) * 100


# ── Formatting ──

def format_hour(hour: int) -> str:
    """0 -> '12 AM', 13 -> '1 PM'."""
    hour %= HOURS_IN_DAY
    suffix = "AM" if hour < 12 else "PM"
    display = hour % 12 or 12
    return f"{display} {suffix}"


def format_utc_offset(tz: str, now: Optional[datetime] = None) -> str:
    offset = _now(now).astimezone(get_zone(tz)).utcoffset() or timedelta(0)
    total_minutes = int(offset.total_seconds() // 60)
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"UTC{sign}{hours:02d}:{minutes:02d}"


def format_timezone_label(tz: str, now: Optional[datetime] = None) -> str:
    """'America/New_York' -> 'New York (UTC-04:00)'."""
    city = tz.split("/")[-1].replace("_", " ")
    return f"{city} ({format_utc_offset(tz, now)})"


def resolve_viewer_timezone(candidate: Optional[str] = None) -> str:
    """The viewer's timezone if it is a known zone, else the configured default."""
    if candidate:
        try:
            get_zone(candidate)
            return candidate
        except ValueError:
            pass
    return settings.DEFAULT_VIEWER_TIMEZONE
