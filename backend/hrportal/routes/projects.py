import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrportal.core.dependencies import get_current_ceo, get_current_team_leader, get_current_user
from hrportal.core.validation import require_non_empty_text, require_user_with_role
from hrportal.database.session import get_db
from hrportal.models.project import Project
from hrportal.models.task import TaskStatus
from hrportal.schemas.project import ProjectCreate, ProjectOut, ProjectStats, ProjectUpdate
from hrportal.services.attendance_service import get_local_date
from hrportal.utils.errors import backend_unavailable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])


def is_overdue(project: Project, today) -> bool:
    return bool(project.due_date and project.due_date < today and project.status != "Completed")


def serialize_project(project: Project, today=None):
    today = today or get_local_date()
    tasks = project.tasks or []
    task_count = len(tasks)
    completed_count = len([t for t in tasks if t.status == TaskStatus.COMPLETED.value])
    progress = int(round((completed_count / task_count) * 100)) if task_count else 0

    return {
        "id": project.id,
        "name": project.name,
        "client_name": project.client_name,
        "description": project.description,
        "status": project.status,
        "priority": project.priority,
        "start_date": project.start_date,
        "due_date": project.due_date,
        "manager_id": project.manager_id,
        "manager_name": project.manager_name,
        "team": project.team,
        "created_by": project.created_by,
        "created_at": project.created_at,
        "task_count": task_count,
        "progress": progress,
        "is_overdue": is_overdue(project, today),
    }


def _get_project(db: Session, project_id: int) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.post("/", response_model=ProjectOut, status_code=201)
def create_project(
    data: ProjectCreate,
    db: Session = Depends(get_db),
    ceo=Depends(get_current_ceo)
):
    name = require_non_empty_text(data.name, "Project name")
    if data.manager_id is not None:
        require_user_with_role(db, data.manager_id, ("team_leader",), detail="Project manager not found")

    project = Project(
        name=name,
        client_name=data.client_name,
        description=data.description,
        status=data.status,
        priority=data.priority,
        start_date=data.start_date,
        due_date=data.due_date,
        manager_id=data.manager_id,
        team=data.team,
        created_by=ceo.id
    )
    db.add(project)
    try:
        db.commit()
        db.refresh(project)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Project creation failed")

    logger.info("Project %s created by user %s", project.id, ceo.id)
    return serialize_project(project)


@router.get("/", response_model=List[ProjectOut])
def get_projects(
    status: str | None = None,
    db: Session = Depends(get_db),
    ceo=Depends(get_current_ceo)
):
    query = db.query(Project)
    if status:
        query = query.filter(Project.status == status)
    today = get_local_date()
    return [serialize_project(p, today) for p in query.order_by(Project.created_at.desc(), Project.id.desc()).all()]


@router.get("/stats", response_model=ProjectStats)
def get_project_stats(
    db: Session = Depends(get_db),
    ceo=Depends(get_current_ceo)
):
    projects = db.query(Project).all()
    today = get_local_date()
    return {
        "total": len(projects),
        "completed": len([p for p in projects if p.status == "Completed"]),
        "in_progress": len([p for p in projects if p.status == "Inprogress"]),
        "on_hold": len([p for p in projects if p.status == "On Hold"]),
        "overdue": len([p for p in projects if is_overdue(p, today)]),
    }


@router.get("/managed", response_model=List[ProjectOut])
def get_managed_projects(
    db: Session = Depends(get_db),
    team_leader=Depends(get_current_team_leader)
):
    projects = db.query(Project).filter(
        Project.manager_id == team_leader.id
    ).order_by(Project.created_at.desc(), Project.id.desc()).all()
    today = get_local_date()
    return [serialize_project(p, today) for p in projects]


@router.get("/options")
def get_project_options(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """Id/name pairs for task assignment pickers."""
    if current_user.role not in ("ceo", "team_leader"):
        raise HTTPException(status_code=403, detail="You do not have access to this resource")
    projects = db.query(Project).order_by(Project.created_at.desc(), Project.id.desc()).all()
    return [{"id": p.id, "name": p.name} for p in projects]


@router.get("/{project_id}", response_model=ProjectOut)
def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    project = _get_project(db, project_id)
    if current_user.role != "ceo" and project.manager_id != current_user.id:
        raise HTTPException(status_code=403, detail="Access denied")
    return serialize_project(project)


@router.put("/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: int,
    data: ProjectUpdate,
    db: Session = Depends(get_db),
    ceo=Depends(get_current_ceo)
):
    project = _get_project(db, project_id)
    changes = data.model_dump(exclude_unset=True)

    if "name" in changes:
        changes["name"] = require_non_empty_text(changes["name"], "Project name")
    if changes.get("manager_id") is not None:
        require_user_with_role(db, changes["manager_id"], ("team_leader",), detail="Project manager not found")

    start = changes.get("start_date", project.start_date)
    due = changes.get("due_date", project.due_date)
    if start and due and due < start:
        raise HTTPException(status_code=400, detail="Due date cannot be before start date")

    for field, value in changes.items():
        setattr(project, field, value)

    try:
        db.commit()
        db.refresh(project)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Project update failed for project %s", project_id)

    return serialize_project(project)
