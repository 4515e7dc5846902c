from pydantic import BaseModel, field_validator, model_validator
from datetime import date, datetime
from typing import Optional
from hrportal.models.task import TaskPriority, TaskStatus


# ---------- CREATE ----------
class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    project_id: int
    assigned_to: int
    priority: TaskPriority = TaskPriority.LOW
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    assign_hours: Optional[float] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str):
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Task title is required")
        return cleaned

    @field_validator("assign_hours")
    @classmethod
    def validate_hours(cls, value: Optional[float]):
        if value is not None and value <= 0:
            raise ValueError("Assigned hours must be greater than 0")
        return value

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date and self.due_date and self.due_date < self.start_date:
            raise ValueError("Due date cannot be before start date")
        return self


# ---------- UPDATE ----------
class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    assigned_to: Optional[int] = None
    assign_hours: Optional[float] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


# ---------- RESPONSE ----------
class TaskOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    assign_hours: Optional[float] = None
    project_id: int
    project_name: Optional[str] = None
    assigned_to: Optional[int] = None
    assignee_name: Optional[str] = None
    created_by: Optional[int] = None
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }


class TaskPage(BaseModel):
    items: list[TaskOut]
    total: int
    page: int
    page_size: int
    total_pages: int
