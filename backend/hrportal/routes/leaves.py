import logging
from calendar import monthrange
from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrportal.core.dependencies import get_current_hr, get_current_user
from hrportal.core.realtime import notify_table_change
from hrportal.core.validation import paginate
from hrportal.database.session import get_db
from hrportal.models.leave import LEAVE_STATUS_ORDER, Leave
from hrportal.models.user import User
from hrportal.schemas.leave import (
    LeaveCreate,
    LeaveOut,
    LeavePage,
    LeaveStatusUpdate,
    PendingLeaveStatus,
)
from hrportal.services.attendance_service import get_local_date
from hrportal.utils.errors import backend_unavailable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leaves", tags=["Leaves"])

PENDING_EXISTS = "Pending leave exists. You cannot apply for a new one."


def end_of_next_month(today: date) -> date:
    year = today.year + (1 if today.month == 12 else 0)
    month = 1 if today.month == 12 else today.month + 1
    return date(year, month, monthrange(year, month)[1])


def _status_then_newest(query):
    status_rank = case(LEAVE_STATUS_ORDER, value=Leave.status, else_=len(LEAVE_STATUS_ORDER))
    return query.order_by(status_rank, Leave.created_at.desc(), Leave.id.desc())


def _employee_info(user: User | None) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "role": user.role}


def _leave_out(leave: Leave) -> dict:
    return {
        "id": leave.id,
        "user_id": leave.user_id,
        "leave_type": leave.leave_type,
        "from_date": leave.from_date,
        "to_date": leave.to_date,
        "total_days": leave.total_days,
        "reason": leave.reason,
        "status": leave.status,
        "created_at": leave.created_at,
        "reviewed_at": leave.reviewed_at,
        "employee": _employee_info(leave.employee),
        "department": leave.employee.department if leave.employee else None,
    }


def _has_pending_leave(db: Session, user_id: int) -> bool:
    return db.query(Leave.id).filter(
        Leave.user_id == user_id,
        Leave.status == "Pending"
    ).first() is not None


# ======================================
# EMPLOYEE APPLY LEAVE
# ======================================
@router.post("/", response_model=LeaveOut, status_code=status.HTTP_201_CREATED)
def apply_leave(
    payload: LeaveCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    today = get_local_date()
    if payload.from_date < today:
        raise HTTPException(status_code=400, detail="Leave cannot start in the past")
    if payload.to_date > end_of_next_month(today):
        raise HTTPException(status_code=400, detail="Leave must end before the end of next month")
    if payload.from_date > payload.to_date:
        raise HTTPException(status_code=400, detail="From date cannot be after to date")

    try:
        if _has_pending_leave(db, current_user.id):
            raise HTTPException(status_code=400, detail=PENDING_EXISTS)

        leave = Leave(
            user_id=current_user.id,
            leave_type=payload.leave_type,
            from_date=payload.from_date,
            to_date=payload.to_date,
            reason=payload.reason,
            status="Pending"
        )
        db.add(leave)
        db.commit()
        db.refresh(leave)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Leave submission failed for user %s", current_user.id)

    logger.info("Leave %s applied by user %s", leave.id, current_user.id)
    notify_table_change("leaves", "INSERT", leave.id, current_user.id)
    return _leave_out(leave)


# ======================================
# EMPLOYEE VIEW OWN LEAVES
# ======================================
@router.get("/my", response_model=list[LeaveOut])
def get_my_leaves(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    leaves = _status_then_newest(
        db.query(Leave).filter(Leave.user_id == current_user.id)
    ).all()
    return [_leave_out(leave) for leave in leaves]


@router.get("/my/pending", response_model=PendingLeaveStatus)
def get_my_pending_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"has_pending_leave": _has_pending_leave(db, current_user.id)}


# ======================================
# HR VIEW ALL LEAVES
# ======================================
@router.get("/", response_model=LeavePage)
def get_all_leaves(
    status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    hr=Depends(get_current_hr)
):
    query = db.query(Leave)
    if status:
        query = query.filter(Leave.status == status)
    result = paginate(_status_then_newest(query), page, page_size)
    result["items"] = [_leave_out(leave) for leave in result["items"]]
    return result


# ======================================
# HR APPROVE / REJECT
# ======================================
@router.put("/{leave_id}/status", response_model=LeaveOut)
def review_leave(
    leave_id: int,
    payload: LeaveStatusUpdate,
    db: Session = Depends(get_db),
    hr: User = Depends(get_current_hr)
):
    leave = db.query(Leave).filter(Leave.id == leave_id).first()

    if not leave:
        raise HTTPException(status_code=404, detail="Leave not found")
    if leave.status != "Pending":
        raise HTTPException(status_code=400, detail="Only pending leaves can be reviewed")

    leave.status = payload.status
    leave.reviewed_by = hr.id
    leave.reviewed_at = datetime.now(timezone.utc)

    try:
        db.commit()
        db.refresh(leave)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Leave review failed for leave %s", leave_id)

    logger.info("Leave %s %s by user %s", leave.id, leave.status.lower(), hr.id)
    notify_table_change("leaves", "UPDATE", leave.id, leave.user_id)
    return _leave_out(leave)
