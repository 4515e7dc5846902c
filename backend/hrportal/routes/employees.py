import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hrportal.core.dependencies import get_current_hr, get_current_user
from hrportal.core.security import hash_password
from hrportal.database.session import get_db
from hrportal.models.project import Project
from hrportal.models.task import Task
from hrportal.models.user import User
from hrportal.schemas.user import (
    EmployeeCreate,
    EmployeeCreateResponse,
    EmployeeOut,
    EmployeeStats,
    EmployeeUpdate,
)
from hrportal.services.attendance_report_service import monthly_history
from hrportal.services.attendance_service import get_local_date
from hrportal.utils.email import send_employee_credentials
from hrportal.utils.errors import backend_unavailable
from hrportal.utils.generator import generate_temp_password, next_employee_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["Employees"])

STAFF_ROLES = ("hr", "ceo")


def _send_employee_credentials_safely(
    to_email: str,
    employee_id: str,
    temp_password: str,
    employee_name: str
) -> None:
    try:
        send_employee_credentials(
            to_email=to_email,
            employee_id=employee_id,
            temp_password=temp_password,
            employee_name=employee_name
        )
    except Exception:
        logger.exception("Credentials email failed for employee %s", employee_id)


def _get_employee(db: Session, user_id: int) -> User:
    employee = db.query(User).filter(User.id == user_id).first()
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


def _latest_employee_id(db: Session, year: int) -> str | None:
    row = db.query(User.employee_id).filter(
        User.employee_id.like(f"EMP{year}%")
    ).order_by(User.employee_id.desc()).first()
    return row[0] if row else None


def employee_stats(db: Session, employee: User) -> dict:
    today = get_local_date()
    history = monthly_history(db, employee, today.year, today.month, today)

    task_projects = db.query(Task.project_id).filter(Task.assigned_to == employee.id)
    managed_projects = db.query(Project.id).filter(Project.manager_id == employee.id)
    project_ids = {pid for (pid,) in task_projects.all()} | {pid for (pid,) in managed_projects.all()}

    return {
        "projects_assigned": len(project_ids),
        "working_days": history["stats"]["present_days"],
        "leaves_taken": history["stats"]["leave_days"],
        "absent_days": history["stats"]["absent_days"],
    }


# ================= EMPLOYEE CREATION =================
@router.post("/", response_model=EmployeeCreateResponse, status_code=status.HTTP_201_CREATED)
def create_employee(
    payload: EmployeeCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    hr: User = Depends(get_current_hr)
):
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already exists")

    year = get_local_date().year
    temp_password = generate_temp_password()

    employee = User(
        name=payload.name,
        email=email,
        role=payload.role,
        department=payload.department,
        designation=payload.designation,
        phone=payload.phone,
        employee_id=next_employee_id(_latest_employee_id(db, year), year),
        password_hash=hash_password(temp_password),
        is_active=True,
        force_password_change=True
    )
    db.add(employee)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Employee was created elsewhere. Please retry.")
    except SQLAlchemyError:
        raise backend_unavailable(db, "Employee creation failed")
    db.refresh(employee)

    background_tasks.add_task(
        _send_employee_credentials_safely,
        to_email=employee.email,
        employee_id=employee.employee_id,
        temp_password=temp_password,
        employee_name=employee.name
    )
    logger.info("Employee %s created by user %s", employee.employee_id, hr.id)

    return {
        "id": employee.id,
        "employee_id": employee.employee_id,
        "email": employee.email
    }


@router.get("/", response_model=List[EmployeeOut])
def get_employees(
    search: str | None = Query(default=None),
    department: str | None = Query(default=None),
    role: str | None = Query(default=None),
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
    hr: User = Depends(get_current_hr)
):
    query = db.query(User).filter(User.role != None)  # noqa: E711
    if not include_inactive:
        query = query.filter(User.is_active == True)  # noqa: E712
    if department and department.lower() != "all departments":
        query = query.filter(User.department == department)
    if role:
        query = query.filter(User.role == role)
    if search:
        needle = f"%{search.strip()}%"
        query = query.filter(or_(
            User.name.ilike(needle),
            User.email.ilike(needle),
            User.employee_id.ilike(needle),
        ))
    return query.order_by(User.name).all()


@router.get("/departments", response_model=List[str])
def get_departments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    rows = db.query(User.department).filter(User.department != None).distinct().all()  # noqa: E711
    return sorted(department for (department,) in rows if department)


@router.get("/me/stats", response_model=EmployeeStats)
def get_my_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return employee_stats(db, current_user)


@router.get("/{user_id}", response_model=EmployeeOut)
def get_employee(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if current_user.id != user_id and current_user.role not in STAFF_ROLES:
        raise HTTPException(status_code=403, detail="Access denied")
    return _get_employee(db, user_id)


@router.get("/{user_id}/stats", response_model=EmployeeStats)
def get_employee_stats(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if current_user.id != user_id and current_user.role not in STAFF_ROLES:
        raise HTTPException(status_code=403, detail="Access denied")
    return employee_stats(db, _get_employee(db, user_id))


@router.put("/{user_id}", response_model=EmployeeOut)
def update_employee(
    user_id: int,
    payload: EmployeeUpdate,
    db: Session = Depends(get_db),
    hr: User = Depends(get_current_hr)
):
    employee = _get_employee(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Name is required")
        changes["name"] = name
    for field, value in changes.items():
        setattr(employee, field, value)

    try:
        db.commit()
        db.refresh(employee)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Employee update failed for user %s", user_id)
    return employee


@router.delete("/{user_id}")
def deactivate_employee(
    user_id: int,
    db: Session = Depends(get_db),
    hr: User = Depends(get_current_hr)
):
    employee = _get_employee(db, user_id)
    if employee.id == hr.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    employee.is_active = False
    try:
        db.commit()
    except SQLAlchemyError:
        raise backend_unavailable(db, "Employee deactivation failed for user %s", user_id)

    logger.info("Employee %s deactivated by user %s", user_id, hr.id)
    return {"message": "Employee deactivated"}
