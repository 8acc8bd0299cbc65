import logging
import time
import uuid
from typing import List, Optional

from models.schema import PunchEvent, UserProfile


def now_ms() -> int:
    return int(time.time() * 1000)


def new_event_id() -> str:
    return uuid.uuid4().hex[:12]


class PunchLogStore:
    """In-memory punch log. `list()` hands out a copy so callers work on a snapshot."""

    def __init__(self, events: Optional[List[PunchEvent]] = None):
        self._events: List[PunchEvent] = list(events or [])

    def list(self) -> List[PunchEvent]:
        return list(self._events)

    def append(self, event: PunchEvent) -> None:
        self._events.append(event)

    def remove(self, event_id: str) -> bool:
        remaining = [e for e in self._events if e.id != event_id]
        if len(remaining) == len(self._events):
            logging.warning(f"No punch with id {event_id} to remove")
            return False
        self._events = remaining
        return True

    def update(self, event: PunchEvent) -> bool:
        for index, existing in enumerate(self._events):
            if existing.id == event.id:
                self._events[index] = event
                return True
        logging.warning(f"No punch with id {event.id} to update")
        return False

    def clear(self) -> None:
        self._events = []

    def __len__(self) -> int:
        return len(self._events)


punch_store = PunchLogStore()
_profile = UserProfile()


def get_profile() -> UserProfile:
    return _profile


def set_profile(profile: UserProfile) -> None:
    global _profile
    _profile = profile
