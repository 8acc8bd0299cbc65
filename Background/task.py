import logging
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Path

from main import (build_monthly_report, compute_statistics, current_status, format_duration,
                  group_events_by_date, open_shift_hours)
from models.schema import PunchEvent, PunchType, UserProfile, VisaType
from utils.helper import get_profile, new_event_id, now_ms, punch_store, set_profile

WEEKLY_STUDENT_LIMIT = 28.0
WEEKLY_WARNING_HOURS = 20.0

app = FastAPI()


def weekly_limit_flag(profile: UserProfile, weekly_hours: float) -> str:
    if profile.visa_type != VisaType.STUDENT:
        return "ok"
    if weekly_hours > WEEKLY_STUDENT_LIMIT:
        return "exceeded"
    if weekly_hours > WEEKLY_WARNING_HOURS:
        return "warning"
    return "ok"


@app.post("/punch")
def receive_punch(kind: PunchType, background_tasks: BackgroundTasks,
                  timestamp_ms: Optional[int] = None, note: Optional[str] = None):
    event = PunchEvent(id=new_event_id(), kind=kind,
                       timestamp_ms=timestamp_ms if timestamp_ms is not None else now_ms(), note=note)
    logging.info(f"Received {kind.value} punch {event.id} at {event.timestamp_ms}")
    background_tasks.add_task(punch_store.append, event)
    return {"status": "Punch received, recording in background.", "id": event.id}


@app.delete("/punch/{event_id}")
def delete_punch(event_id: str):
    if not punch_store.remove(event_id):
        raise HTTPException(status_code=404, detail=f"Unknown punch id: {event_id}")
    return {"status": "deleted", "id": event_id}


@app.put("/punch/{event_id}")
def correct_punch(event_id: str, kind: PunchType, timestamp_ms: int, note: Optional[str] = None):
    event = PunchEvent(id=event_id, kind=kind, timestamp_ms=timestamp_ms, note=note)
    if not punch_store.update(event):
        raise HTTPException(status_code=404, detail=f"Unknown punch id: {event_id}")
    logging.info(f"Corrected punch {event_id} to {kind.value} at {timestamp_ms}")
    return {"status": "updated", "id": event_id}


@app.delete("/punches")
def reset_punches():
    count = len(punch_store)
    punch_store.clear()
    logging.info(f"Cleared {count} punches")
    return {"status": "cleared", "removed": count}


@app.get("/profile")
def read_profile():
    return get_profile()


@app.put("/profile")
def update_profile(profile: UserProfile):
    set_profile(profile)
    logging.info(f"Profile set to visa type {profile.visa_type.value}")
    return profile


@app.get("/status")
def get_status(now: Optional[int] = None):
    events = punch_store.list()
    reference = now if now is not None else now_ms()
    status = current_status(events)
    return {
        "status": status.value if status else "NONE",
        "open_shift_hours": open_shift_hours(events, reference),
    }


@app.get("/summary")
def get_summary(now: Optional[int] = None):
    reference = now if now is not None else now_ms()
    summary = compute_statistics(punch_store.list(), reference).summary
    return {
        "summary": summary.model_dump(),
        "weekly": format_duration(summary.weekly_hours),
        "monthly": format_duration(summary.monthly_hours),
        "today": format_duration(summary.today.total),
        "weekly_limit": weekly_limit_flag(get_profile(), summary.weekly_hours),
    }


@app.get("/report/{year}/{month}")
def get_monthly_report(year: int, month: int = Path(..., ge=1, le=12)):
    report = build_monthly_report(compute_statistics(punch_store.list(), now_ms()), year, month)
    return {
        "report": report.model_dump(),
        "profile": get_profile().model_dump(),
        "formatted": {
            "rows": [
                {
                    "date": row.date,
                    "worked": format_duration(row.worked_hours),
                    "night": format_duration(row.night_hours),
                    "breaks": format_duration(row.break_hours),
                    "overtime": format_duration(row.overtime_hours),
                }
                for row in report.rows
            ],
            "total": {
                "worked": format_duration(report.worked_hours),
                "night": format_duration(report.night_hours),
                "breaks": format_duration(report.break_hours),
                "overtime": format_duration(report.overtime_hours),
            },
        },
    }


@app.get("/history")
def get_history():
    return [
        {"date": day, "events": [e.model_dump() for e in events]}
        for day, events in group_events_by_date(punch_store.list())
    ]
