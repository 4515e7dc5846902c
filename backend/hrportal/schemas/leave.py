from pydantic import BaseModel, field_validator
from datetime import date, datetime
from typing import Literal, Optional

from hrportal.schemas.user import UserInfo

LeaveTypeName = Literal["Medical Leave", "Short Leave", "Casual Leave", "Paid Leave", "Other"]


# -------- CREATE --------
class LeaveCreate(BaseModel):
    leave_type: LeaveTypeName = "Medical Leave"
    from_date: date
    to_date: date
    reason: str

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: str):
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Reason is required")
        return cleaned


class LeaveStatusUpdate(BaseModel):
    status: Literal["Approved", "Rejected"]


# -------- RESPONSE --------
class LeaveOut(BaseModel):
    id: int
    user_id: int
    leave_type: str
    from_date: date
    to_date: date
    total_days: int
    reason: str
    status: str
    created_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    employee: Optional[UserInfo] = None
    department: Optional[str] = None

    model_config = {
        "from_attributes": True
    }


class LeavePage(BaseModel):
    items: list[LeaveOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class PendingLeaveStatus(BaseModel):
    has_pending_leave: bool
