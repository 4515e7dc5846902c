from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

TicketStatusName = Literal["Open", "In Progress", "Closed"]
TicketPriorityName = Literal["Low", "Medium", "High"]


class TicketCreate(BaseModel):
    subject: str
    description: Optional[str] = None
    category: Optional[str] = None
    priority: TicketPriorityName = "Medium"
    file_url: Optional[str] = None

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, value: str):
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Subject is required")
        return cleaned


class TicketUpdate(BaseModel):
    subject: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[TicketPriorityName] = None
    file_url: Optional[str] = None


class TicketStatusUpdate(BaseModel):
    status: TicketStatusName


class TicketOut(BaseModel):
    id: int
    user_id: int
    name: Optional[str] = None
    department: Optional[str] = None
    subject: str
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    status: str
    file_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }


class TicketPage(BaseModel):
    items: list[TicketOut]
    total: int
    page: int
    page_size: int
    total_pages: int
