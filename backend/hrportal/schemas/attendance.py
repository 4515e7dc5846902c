from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel


class AttendanceTodayOut(BaseModel):
    record_id: Optional[int] = None
    date: date
    is_live: bool
    punch_in_time: Optional[datetime] = None
    punch_out_time: Optional[datetime] = None
    first_punch_in: Optional[datetime] = None
    accumulated_seconds: int
    total_seconds: int
    total_hms: str
    production_time: str
    progress_percent: float
    button_text: str
    status_label: str
    server_time: datetime


class AttendanceDayOut(BaseModel):
    date: date
    name: str
    status: str
    punch_in: Optional[datetime] = None
    punch_out: Optional[datetime] = None
    total_seconds: int
    total_time: str
    short_leave: bool


class AttendanceHistoryStats(BaseModel):
    present_days: int
    absent_days: int
    leave_days: int
    weekend_days: int
    total_seconds: int


class AttendanceHistoryOut(BaseModel):
    month: int
    year: int
    records: list[AttendanceDayOut]
    stats: AttendanceHistoryStats


class AttendanceOverviewRow(BaseModel):
    user_id: int
    name: str
    department: str
    date: date
    status: str
    check_in: str
    check_out: str
    total_hours: str
    short_leave: str


class DepartmentPresence(BaseModel):
    department: str
    members: int
    presence_percent: float


PresencePeriod = Literal["Weekly", "BiWeekly", "Monthly"]
