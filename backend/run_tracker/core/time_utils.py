from datetime import datetime, timezone

from run_tracker.core.constants import MILE_M


def to_utc(dt: datetime) -> datetime:
    """Normalize a datetime to an aware UTC datetime.

    FIT timestamps decode as naive datetimes that already represent UTC, so a
    naive value is tagged as UTC rather than shifted. Aware values are
    converted, keeping the instant.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def seconds_to_hhmmss(total_seconds: int) -> str:
    """
    Convert total seconds (int) -> 'HH:MM:SS'.
    Example: 2732 -> '00:45:32'
    """
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def compute_pace(duration_seconds: float, distance_m: float) -> str:
    """
    Compute pace per mile as 'M:SS/mi' or 'MM:SS/mi'.
    Example: duration=2732 sec, distance=11828.6 m -> '6:11/mi'
    """
    if not distance_m or distance_m <= 0:
        return "0:00/mi"

    pace_sec = int(duration_seconds / (distance_m / MILE_M))

    minutes = pace_sec // 60
    seconds = pace_sec % 60
    return f"{minutes}:{seconds:02d}/mi"


def to_local_datetime(dt, tz_name: str | None = None):
    """Convert a datetime from source tz (assume UTC if naive) to local or given tz.

    - If `tz_name` is 'local' or None: use system local timezone.
    - If `tz_name` is IANA tz name (e.g., 'America/New_York'): use that.
    - If `dt` has no tzinfo, assume UTC.
    """
    from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

    dt = to_utc(dt)
    if tz_name and tz_name != "local":
        try:
            return dt.astimezone(ZoneInfo(tz_name))
        except ZoneInfoNotFoundError:
            return dt.astimezone()
    return dt.astimezone()
