import logging
import math
from collections import defaultdict
from datetime import date, tzinfo
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models.schema import (AggregationResult, BreakInterval, DayBucket, MonthlyReport,
                           PunchEvent, PunchType, Shift, Summary, TodayBreakdown)
from utils.intervals import (DAY_WINDOWS, MORNING_WINDOWS, MS_PER_HOUR, NIGHT_WINDOWS, REFERENCE_TZ,
                             date_key, local_date, month_start, split_by_day, subtract_intervals,
                             week_start, window_overlap_ms)

DAILY_OVERTIME_THRESHOLD = 8.0


class ShiftState(str, Enum):
    IDLE = "IDLE"
    WORKING = "WORKING"
    ON_BREAK = "ON_BREAK"


# Every (state, kind) pair missing from this table is ignored.
TRANSITIONS = {
    (ShiftState.IDLE, PunchType.CLOCK_IN): ShiftState.WORKING,
    (ShiftState.WORKING, PunchType.BREAK_START): ShiftState.ON_BREAK,
    (ShiftState.ON_BREAK, PunchType.BREAK_END): ShiftState.WORKING,
    (ShiftState.WORKING, PunchType.CLOCK_OUT): ShiftState.IDLE,
    # an unfinished break is dropped, the shift still closes
    (ShiftState.ON_BREAK, PunchType.CLOCK_OUT): ShiftState.IDLE,
}


def sort_events(events: Iterable[PunchEvent]) -> List[PunchEvent]:
    # sorted() is stable, so ties keep their insertion order
    return sorted(events, key=lambda e: e.timestamp_ms)


def _replay(events: Iterable[PunchEvent]) -> Tuple[List[Shift], Optional[Shift]]:
    state = ShiftState.IDLE
    shifts: List[Shift] = []
    shift_start: Optional[int] = None
    breaks: List[BreakInterval] = []
    break_start: Optional[int] = None

    for event in sort_events(events):
        next_state = TRANSITIONS.get((state, event.kind))
        if next_state is None:
            logging.debug(f"Ignored {event.kind.value} punch {event.id} while {state.value}")
            continue

        if event.kind == PunchType.CLOCK_IN:
            shift_start, breaks = event.timestamp_ms, []
        elif event.kind == PunchType.BREAK_START:
            break_start = event.timestamp_ms
        elif event.kind == PunchType.BREAK_END:
            breaks.append(BreakInterval(start_ms=break_start, end_ms=event.timestamp_ms))
            break_start = None
        elif event.kind == PunchType.CLOCK_OUT:
            if event.timestamp_ms > shift_start:
                shifts.append(Shift(start_ms=shift_start, end_ms=event.timestamp_ms, breaks=breaks))
            else:
                logging.debug(f"Dropped zero-length shift at {shift_start}")
            shift_start, breaks, break_start = None, [], None
        state = next_state

    current = None
    if state != ShiftState.IDLE:
        current_breaks = list(breaks)
        if break_start is not None:
            current_breaks.append(BreakInterval(start_ms=break_start))
        current = Shift(start_ms=shift_start, breaks=current_breaks)
    return shifts, current


def reconstruct_shifts(events: Iterable[PunchEvent]) -> List[Shift]:
    """
    Replay the punch log and return the closed shifts, oldest first.
    A shift still open at the end of the log is left out.
    """
    shifts, _ = _replay(events)
    return shifts


def open_shift(events: Iterable[PunchEvent]) -> Optional[Shift]:
    _, current = _replay(events)
    return current


def current_status(events: Iterable[PunchEvent]) -> Optional[PunchType]:
    """Kind of the most recent punch, or None when idle (no punches or last was CLOCK_OUT)."""
    ordered = sort_events(events)
    if not ordered or ordered[-1].kind == PunchType.CLOCK_OUT:
        return None
    return ordered[-1].kind


def open_shift_hours(events: Iterable[PunchEvent], now_ms: int) -> float:
    current = open_shift(events)
    if current is None or now_ms <= current.start_ms:
        return 0.0
    holes = [(b.start_ms, b.end_ms if b.end_ms is not None else now_ms) for b in current.breaks]
    worked = subtract_intervals(current.start_ms, now_ms, holes)
    return sum(end - start for start, end in worked) / MS_PER_HOUR


def _worked_intervals(shift: Shift) -> List[Tuple[int, int]]:
    holes = [(b.start_ms, b.end_ms) for b in shift.breaks if b.end_ms is not None]
    return subtract_intervals(shift.start_ms, shift.end_ms, holes)


def aggregate(shifts: Sequence[Shift], reference_ms: int, tz: tzinfo = REFERENCE_TZ,
              daily_threshold: float = DAILY_OVERTIME_THRESHOLD) -> AggregationResult:
    worked: Dict[date, int] = defaultdict(int)
    night: Dict[date, int] = defaultdict(int)
    breaks: Dict[date, int] = defaultdict(int)
    today = local_date(reference_ms, tz)
    morning_today = day_today = night_today = 0

    for shift in shifts:
        if not shift.is_closed:
            continue
        for start, end in _worked_intervals(shift):
            for day, piece_start, piece_end in split_by_day(start, end, tz):
                worked[day] += piece_end - piece_start
                night_ms = window_overlap_ms(day, piece_start, piece_end, NIGHT_WINDOWS, tz)
                night[day] += night_ms
                if day == today:
                    night_today += night_ms
                    morning_today += window_overlap_ms(day, piece_start, piece_end, MORNING_WINDOWS, tz)
                    day_today += window_overlap_ms(day, piece_start, piece_end, DAY_WINDOWS, tz)
        for brk in shift.breaks:
            if brk.end_ms is None:
                continue
            start, end = max(brk.start_ms, shift.start_ms), min(brk.end_ms, shift.end_ms)
            for day, piece_start, piece_end in split_by_day(start, end, tz):
                breaks[day] += piece_end - piece_start

    days: Dict[str, DayBucket] = {}
    for day in sorted(set(worked) | set(breaks)):
        worked_hours = worked[day] / MS_PER_HOUR
        days[day.isoformat()] = DayBucket(
            date=day.isoformat(),
            worked_hours=worked_hours,
            night_hours=night[day] / MS_PER_HOUR,
            break_hours=breaks[day] / MS_PER_HOUR,
            overtime_hours=max(0.0, worked_hours - daily_threshold),
        )

    week_first, month_first = week_start(today), month_start(today)
    summary = Summary(
        weekly_hours=sum(ms for day, ms in worked.items() if week_first <= day <= today) / MS_PER_HOUR,
        monthly_hours=sum(ms for day, ms in worked.items() if month_first <= day <= today) / MS_PER_HOUR,
        today=TodayBreakdown(
            morning=morning_today / MS_PER_HOUR,
            day=day_today / MS_PER_HOUR,
            night=night_today / MS_PER_HOUR,
            total=(morning_today + day_today + night_today) / MS_PER_HOUR,
        ),
    )
    return AggregationResult(summary=summary, days=days)


def compute_statistics(events: Iterable[PunchEvent], reference_ms: int, tz: tzinfo = REFERENCE_TZ,
                       daily_threshold: float = DAILY_OVERTIME_THRESHOLD) -> AggregationResult:
    snapshot = list(events)
    return aggregate(reconstruct_shifts(snapshot), reference_ms, tz=tz, daily_threshold=daily_threshold)


def build_monthly_report(result: AggregationResult, year: int, month: int) -> MonthlyReport:
    period = f"{year:04d}-{month:02d}"
    rows = [d for d in result.sorted_days() if d.date.startswith(period + "-")]
    return MonthlyReport(
        period=period,
        rows=rows,
        worked_hours=sum(r.worked_hours for r in rows),
        night_hours=sum(r.night_hours for r in rows),
        break_hours=sum(r.break_hours for r in rows),
        overtime_hours=sum(r.overtime_hours for r in rows),
    )


def group_events_by_date(events: Iterable[PunchEvent],
                         tz: tzinfo = REFERENCE_TZ) -> List[Tuple[str, List[PunchEvent]]]:
    groups: Dict[str, List[PunchEvent]] = defaultdict(list)
    for event in reversed(sort_events(events)):
        groups[date_key(event.timestamp_ms, tz)].append(event)
    return sorted(groups.items(), key=lambda item: item[0], reverse=True)


def format_duration(hours: float) -> str:
    """Render fractional hours as "Xh Ym". Minutes are rounded half up and carry into hours."""
    if not math.isfinite(hours):
        return "0h 0m"
    total_minutes = int(max(0.0, hours) * 60 + 0.5)
    whole_hours, minutes = divmod(total_minutes, 60)
    return f"{whole_hours}h {minutes}m"
