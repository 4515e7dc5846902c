import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrportal.core.dependencies import get_current_team_leader, get_current_user
from hrportal.core.realtime import notify_table_change
from hrportal.core.validation import paginate, require_user_with_role
from hrportal.database.session import get_db
from hrportal.models.project import Project
from hrportal.models.task import Task, TaskStatus
from hrportal.models.user import User
from hrportal.schemas.task import TaskCreate, TaskOut, TaskPage, TaskStatusUpdate, TaskUpdate
from hrportal.utils.errors import backend_unavailable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["Tasks"])

# the only moves an assignee may make on their own task
ASSIGNEE_TRANSITIONS = {
    TaskStatus.PENDING.value: {TaskStatus.IN_PROGRESS.value},
    TaskStatus.IN_PROGRESS.value: {TaskStatus.IN_REVIEW.value},
}


def apply_status(task: Task, new_status: str, now: datetime | None = None) -> None:
    task.status = new_status
    if new_status == TaskStatus.COMPLETED.value:
        task.completed_at = now or datetime.now(timezone.utc)
    else:
        task.completed_at = None


def can_change_status(task: Task, user: User, new_status: str) -> bool:
    if task.created_by == user.id:
        return True
    if task.assigned_to == user.id:
        return new_status in ASSIGNEE_TRANSITIONS.get(task.status, set())
    return False


def _get_task(db: Session, task_id: int) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _commit_task(db: Session, task: Task, event: str) -> Task:
    try:
        db.commit()
        db.refresh(task)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Task %s failed for task %s", event.lower(), task.id)
    notify_table_change("tasks", event, task.id, task.assigned_to)
    return task


# =====================================
# CREATE TASK (Team leader)
# =====================================
@router.post("/", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    db: Session = Depends(get_db),
    team_leader: User = Depends(get_current_team_leader)
):
    project = db.query(Project).filter(Project.id == payload.project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    require_user_with_role(db, payload.assigned_to, ("employee",), detail="Employee not found")

    task = Task(
        title=payload.title,
        description=payload.description,
        start_date=payload.start_date,
        due_date=payload.due_date,
        assign_hours=payload.assign_hours,
        project_id=payload.project_id,
        assigned_to=payload.assigned_to,
        created_by=team_leader.id,
        priority=payload.priority.value,
        status=TaskStatus.PENDING.value
    )
    db.add(task)
    try:
        db.commit()
        db.refresh(task)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Task creation failed")

    logger.info("Task %s assigned to user %s by %s", task.id, task.assigned_to, team_leader.id)
    notify_table_change("tasks", "INSERT", task.id, task.assigned_to)
    return task


# =====================================
# TASKS CREATED BY THE TEAM LEADER
# =====================================
@router.get("/created", response_model=list[TaskOut])
def get_created_tasks(
    db: Session = Depends(get_db),
    team_leader: User = Depends(get_current_team_leader)
):
    return db.query(Task).filter(
        Task.created_by == team_leader.id
    ).order_by(desc(Task.created_at), desc(Task.id)).all()


# =====================================
# MY TASKS (Assignee)
# =====================================
@router.get("/my", response_model=TaskPage)
def get_my_tasks(
    status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Task).filter(Task.assigned_to == current_user.id)
    if status:
        query = query.filter(Task.status == status)

    # active work first, then newest
    query = query.order_by(
        case(
            (Task.status == TaskStatus.IN_PROGRESS.value, 0),
            (Task.status == TaskStatus.PENDING.value, 1),
            (Task.status == TaskStatus.IN_REVIEW.value, 2),
            else_=3
        ),
        desc(Task.created_at),
        desc(Task.id)
    )
    return paginate(query, page, page_size)


@router.get("/{task_id}", response_model=TaskOut)
def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    task = _get_task(db, task_id)
    if current_user.id not in (task.assigned_to, task.created_by) and current_user.role != "ceo":
        raise HTTPException(status_code=403, detail="Access denied")
    return task


# =====================================
# EDIT TASK (Creator)
# =====================================
@router.put("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: int,
    payload: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    task = _get_task(db, task_id)
    if task.created_by != current_user.id:
        raise HTTPException(status_code=403, detail="Only the task creator can edit this task")

    changes = payload.model_dump(exclude_unset=True)
    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Task title is required")
        changes["title"] = title
    if changes.get("assigned_to") is not None:
        require_user_with_role(db, changes["assigned_to"], ("employee",), detail="Employee not found")

    start = changes.get("start_date", task.start_date)
    due = changes.get("due_date", task.due_date)
    if start and due and due < start:
        raise HTTPException(status_code=400, detail="Due date cannot be before start date")

    new_status = changes.pop("status", None)
    if "priority" in changes and changes["priority"] is not None:
        changes["priority"] = changes["priority"].value
    for field, value in changes.items():
        setattr(task, field, value)
    if new_status is not None:
        apply_status(task, new_status.value)

    return _commit_task(db, task, "UPDATE")


# =====================================
# CHANGE STATUS
# =====================================
@router.patch("/{task_id}/status", response_model=TaskOut)
def change_task_status(
    task_id: int,
    payload: TaskStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    task = _get_task(db, task_id)
    new_status = payload.status.value

    if current_user.id not in (task.assigned_to, task.created_by):
        raise HTTPException(status_code=403, detail="Access denied")
    if not can_change_status(task, current_user, new_status):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot move task from {task.status} to {new_status}"
        )

    apply_status(task, new_status)
    logger.info("Task %s moved to %s by user %s", task.id, new_status, current_user.id)
    return _commit_task(db, task, "UPDATE")


@router.delete("/{task_id}")
def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    task = _get_task(db, task_id)
    if task.created_by != current_user.id:
        raise HTTPException(status_code=403, detail="Only the task creator can delete this task")

    assigned_to = task.assigned_to
    db.delete(task)
    try:
        db.commit()
    except SQLAlchemyError:
        raise backend_unavailable(db, "Task deletion failed for task %s", task_id)

    notify_table_change("tasks", "DELETE", task_id, assigned_to)
    return {"message": "Task deleted"}
