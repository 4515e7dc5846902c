from datetime import date as date_cls

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrportal.core.dependencies import get_current_hr, get_current_user
from hrportal.database.session import get_db
from hrportal.models.user import User
from hrportal.schemas.attendance import (
    AttendanceHistoryOut,
    AttendanceOverviewRow,
    AttendanceTodayOut,
    DepartmentPresence,
    PresencePeriod,
)
from hrportal.services.attendance_report_service import (
    daily_overview,
    department_presence,
    monthly_history,
)
from hrportal.services.attendance_service import (
    attendance_reconciler,
    get_local_date,
)
from hrportal.utils.errors import backend_unavailable

router = APIRouter(prefix="/attendance", tags=["Attendance"])

OVERVIEW_ROLES = ("hr", "ceo")


# ---------------- TODAY ----------------
@router.get("/today", response_model=AttendanceTodayOut)
def today_attendance(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    state = attendance_reconciler.load_today(current_user.id, db)
    return state.snapshot()


# ---------------- PUNCH IN / OUT ----------------
@router.post("/toggle", response_model=AttendanceTodayOut)
def toggle_attendance(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    state = attendance_reconciler.toggle(current_user.id, db)
    return state.snapshot()


# ---------------- HISTORY ----------------
@router.get("/history", response_model=AttendanceHistoryOut)
def attendance_history(
    month: int = Query(default=None, ge=1, le=12),
    year: int = Query(default=None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    today = get_local_date()
    try:
        return monthly_history(
            db,
            current_user,
            year or today.year,
            month or today.month,
            today
        )
    except SQLAlchemyError:
        raise backend_unavailable(db, "Attendance history lookup failed")


# ---------------- DAILY OVERVIEW ----------------
@router.get("/overview", response_model=list[AttendanceOverviewRow])
def attendance_overview(
    day: date_cls | None = Query(default=None, alias="date"),
    department: str | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    target_day = day or get_local_date()
    try:
        if current_user.role in OVERVIEW_ROLES:
            users = db.query(User).filter(
                User.is_active == True,  # noqa: E712
                User.role != None  # noqa: E711
            ).all()
        else:
            users = [current_user]
        return daily_overview(db, target_day, users, department=department, search=search)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Attendance overview lookup failed")


# ---------------- PRESENCE BY DEPARTMENT ----------------
@router.get("/presence", response_model=list[DepartmentPresence])
def attendance_presence(
    period: PresencePeriod = "Weekly",
    db: Session = Depends(get_db),
    current_user=Depends(get_current_hr)
):
    try:
        return department_presence(db, period, get_local_date())
    except SQLAlchemyError:
        raise backend_unavailable(db, "Department presence lookup failed")
