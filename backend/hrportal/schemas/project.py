from pydantic import BaseModel, model_validator
from datetime import date, datetime
from typing import Literal, Optional

ProjectStatusName = Literal["Inprogress", "Completed", "On Hold"]
PriorityName = Literal["High", "Medium", "Low"]


class ProjectCreate(BaseModel):
    name: str
    client_name: Optional[str] = None
    description: Optional[str] = None
    status: ProjectStatusName = "Inprogress"
    priority: PriorityName = "High"
    start_date: date
    due_date: date
    manager_id: Optional[int] = None
    team: Optional[str] = None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.due_date < self.start_date:
            raise ValueError("Due date cannot be before start date")
        return self


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    client_name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[ProjectStatusName] = None
    priority: Optional[PriorityName] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    manager_id: Optional[int] = None
    team: Optional[str] = None


class ProjectOut(BaseModel):
    id: int
    name: str
    client_name: Optional[str] = None
    description: Optional[str] = None
    status: str
    priority: str
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    manager_id: Optional[int] = None
    manager_name: Optional[str] = None
    team: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    task_count: int = 0
    progress: int = 0
    is_overdue: bool = False


class ProjectStats(BaseModel):
    total: int
    completed: int
    in_progress: int
    on_hold: int
    overdue: int
