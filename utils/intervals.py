from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, List, Sequence, Tuple
from zoneinfo import ZoneInfo

REFERENCE_TZ = ZoneInfo("Asia/Tokyo")

MS_PER_HOUR = 3_600_000

# Local-hour ranges [start, end). Together they cover all 24 hours exactly once.
NIGHT_WINDOWS = ((0, 5), (22, 24))
MORNING_WINDOWS = ((5, 9),)
DAY_WINDOWS = ((9, 22),)

Interval = Tuple[int, int]


def clamp_ms(timestamp_ms: int) -> int:
    return min(max(timestamp_ms, MIN_TIMESTAMP_MS), MAX_TIMESTAMP_MS)


def local_date(timestamp_ms: int, tz: tzinfo = REFERENCE_TZ) -> date:
    return datetime.fromtimestamp(clamp_ms(timestamp_ms) // 1000, tz).date()


def date_key(timestamp_ms: int, tz: tzinfo = REFERENCE_TZ) -> str:
    return local_date(timestamp_ms, tz).isoformat()


def hour_boundary_ms(day: date, hour: int, tz: tzinfo = REFERENCE_TZ) -> int:
    """Epoch ms of `hour`:00 local time on `day`. Hour 24 is the next midnight."""
    if hour >= 24:
        day, hour = day + timedelta(days=1), hour - 24
    moment = datetime(day.year, day.month, day.day, hour, tzinfo=tz)
    return int(moment.timestamp()) * 1000


# Outside this range datetime cannot represent the local date.
MIN_TIMESTAMP_MS = hour_boundary_ms(date(1, 1, 2), 0)
MAX_TIMESTAMP_MS = hour_boundary_ms(date(9999, 12, 30), 0)


def overlap_ms(start: int, end: int, window_start: int, window_end: int) -> int:
    return max(0, min(end, window_end) - max(start, window_start))


def subtract_intervals(start: int, end: int, holes: Iterable[Interval]) -> List[Interval]:
    """Return the parts of [start, end) not covered by any of `holes`."""
    pieces = []
    cursor = start
    for hole_start, hole_end in sorted(holes):
        hole_start, hole_end = max(hole_start, start), min(hole_end, end)
        if hole_end <= hole_start:
            continue
        if hole_start > cursor:
            pieces.append((cursor, hole_start))
        cursor = max(cursor, hole_end)
    if cursor < end:
        pieces.append((cursor, end))
    return pieces


def split_by_day(start: int, end: int, tz: tzinfo = REFERENCE_TZ) -> List[Tuple[date, int, int]]:
    """Cut [start, end) at every local midnight, tagging each piece with its date."""
    start, end = clamp_ms(start), clamp_ms(end)
    pieces = []
    cursor = start
    while cursor < end:
        day = local_date(cursor, tz)
        next_midnight = hour_boundary_ms(day, 24, tz)
        piece_end = min(end, next_midnight)
        pieces.append((day, cursor, piece_end))
        cursor = piece_end
    return pieces


def window_overlap_ms(day: date, start: int, end: int,
                      windows: Sequence[Tuple[int, int]], tz: tzinfo = REFERENCE_TZ) -> int:
    """Overlap of [start, end), lying within `day`, with that day's hour windows."""
    total = 0
    for first_hour, last_hour in windows:
        total += overlap_ms(start, end,
                            hour_boundary_ms(day, first_hour, tz),
                            hour_boundary_ms(day, last_hour, tz))
    return total


def week_start(day: date) -> date:
    # Monday-based week; a Sunday belongs to the week that began six days earlier
    return day - timedelta(days=day.weekday())


def month_start(day: date) -> date:
    return day.replace(day=1)
