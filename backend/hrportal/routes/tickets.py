import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrportal.core.dependencies import get_current_hr, get_current_user
from hrportal.core.realtime import notify_table_change
from hrportal.core.validation import paginate
from hrportal.database.session import get_db
from hrportal.models.ticket import Ticket
from hrportal.models.user import User
from hrportal.schemas.ticket import (
    TicketCreate,
    TicketOut,
    TicketPage,
    TicketStatusUpdate,
    TicketUpdate,
)
from hrportal.utils.errors import backend_unavailable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["Helpdesk"])

SUPPORT_ROLES = ("hr", "ceo")


def _get_ticket(db: Session, ticket_id: int) -> Ticket:
    ticket = db.query(Ticket).filter(Ticket.id == ticket_id).first()
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


def _get_own_open_ticket(db: Session, ticket_id: int, user: User) -> Ticket:
    ticket = _get_ticket(db, ticket_id)
    if ticket.user_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied")
    if ticket.status != "Open":
        raise HTTPException(status_code=400, detail="Only open tickets can be changed")
    return ticket


@router.post("/", response_model=TicketOut, status_code=status.HTTP_201_CREATED)
def create_ticket(
    payload: TicketCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = Ticket(
        user_id=current_user.id,
        subject=payload.subject,
        description=payload.description,
        category=payload.category,
        priority=payload.priority,
        file_url=payload.file_url,
        status="Open"
    )
    db.add(ticket)
    try:
        db.commit()
        db.refresh(ticket)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Ticket creation failed for user %s", current_user.id)

    logger.info("Ticket %s opened by user %s", ticket.id, current_user.id)
    notify_table_change("tickets", "INSERT", ticket.id, current_user.id)
    return ticket


@router.get("/", response_model=TicketPage)
def list_tickets(
    search: str | None = Query(default=None),
    status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Ticket).join(User, Ticket.user_id == User.id)
    if current_user.role not in SUPPORT_ROLES:
        query = query.filter(Ticket.user_id == current_user.id)
    if status:
        query = query.filter(Ticket.status == status)
    if search:
        needle = f"%{search.strip()}%"
        query = query.filter(or_(
            Ticket.subject.ilike(needle),
            Ticket.category.ilike(needle),
            User.name.ilike(needle),
            User.department.ilike(needle),
        ))
    return paginate(query.order_by(Ticket.created_at.desc(), Ticket.id.desc()), page, page_size)


@router.get("/{ticket_id}", response_model=TicketOut)
def get_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = _get_ticket(db, ticket_id)
    if ticket.user_id != current_user.id and current_user.role not in SUPPORT_ROLES:
        raise HTTPException(status_code=403, detail="Access denied")
    return ticket


@router.put("/{ticket_id}", response_model=TicketOut)
def update_ticket(
    ticket_id: int,
    payload: TicketUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = _get_own_open_ticket(db, ticket_id, current_user)

    changes = payload.model_dump(exclude_unset=True)
    if "subject" in changes:
        subject = (changes["subject"] or "").strip()
        if not subject:
            raise HTTPException(status_code=400, detail="Subject is required")
        changes["subject"] = subject
    for field, value in changes.items():
        setattr(ticket, field, value)

    try:
        db.commit()
        db.refresh(ticket)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Ticket update failed for ticket %s", ticket_id)

    notify_table_change("tickets", "UPDATE", ticket.id, ticket.user_id)
    return ticket


@router.delete("/{ticket_id}")
def delete_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = _get_own_open_ticket(db, ticket_id, current_user)

    db.delete(ticket)
    try:
        db.commit()
    except SQLAlchemyError:
        raise backend_unavailable(db, "Ticket deletion failed for ticket %s", ticket_id)

    notify_table_change("tickets", "DELETE", ticket_id, current_user.id)
    return {"message": "Ticket deleted"}


@router.patch("/{ticket_id}/status", response_model=TicketOut)
def change_ticket_status(
    ticket_id: int,
    payload: TicketStatusUpdate,
    db: Session = Depends(get_db),
    hr: User = Depends(get_current_hr)
):
    ticket = _get_ticket(db, ticket_id)
    ticket.status = payload.status

    try:
        db.commit()
        db.refresh(ticket)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Ticket status change failed for ticket %s", ticket_id)

    logger.info("Ticket %s set to %s by user %s", ticket.id, ticket.status, hr.id)
    notify_table_change("tickets", "UPDATE", ticket.id, ticket.user_id)
    return ticket
