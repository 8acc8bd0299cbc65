from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PunchType(str, Enum):
    CLOCK_IN = "CLOCK_IN"
    BREAK_START = "BREAK_START"
    BREAK_END = "BREAK_END"
    CLOCK_OUT = "CLOCK_OUT"


class VisaType(str, Enum):
    REGULAR = "REGULAR"
    STUDENT = "STUDENT"


class UserProfile(BaseModel):
    name: str = ""
    visa_type: VisaType = VisaType.STUDENT


class PunchEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    kind: PunchType
    timestamp_ms: int
    note: Optional[str] = None


class BreakInterval(BaseModel):
    start_ms: int
    end_ms: Optional[int] = None


class Shift(BaseModel):
    start_ms: int
    end_ms: Optional[int] = None
    breaks: List[BreakInterval] = Field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.end_ms is not None


class DayBucket(BaseModel):
    date: str
    worked_hours: float = 0.0
    night_hours: float = 0.0
    break_hours: float = 0.0
    overtime_hours: float = 0.0


class TodayBreakdown(BaseModel):
    morning: float = 0.0
    day: float = 0.0
    night: float = 0.0
    total: float = 0.0


class Summary(BaseModel):
    weekly_hours: float = 0.0
    monthly_hours: float = 0.0
    today: TodayBreakdown = Field(default_factory=TodayBreakdown)


class AggregationResult(BaseModel):
    summary: Summary = Field(default_factory=Summary)
    days: Dict[str, DayBucket] = Field(default_factory=dict)

    def sorted_days(self, descending: bool = False) -> List[DayBucket]:
        return sorted(self.days.values(), key=lambda d: d.date, reverse=descending)

    def days_between(self, first: date, last: date) -> List[DayBucket]:
        """Buckets with first <= date <= last, ascending. Days without work are absent."""
        lo, hi = first.isoformat(), last.isoformat()
        return [d for d in self.sorted_days() if lo <= d.date <= hi]


class MonthlyReport(BaseModel):
    period: str
    rows: List[DayBucket] = Field(default_factory=list)
    worked_hours: float = 0.0
    night_hours: float = 0.0
    break_hours: float = 0.0
    overtime_hours: float = 0.0
