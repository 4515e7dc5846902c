from __future__ import annotations

import re
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from hrportal.models.user import ROLES, User


def require_non_empty_text(value: Any, field_name: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field_name} is required",
        )
    return text


def require_user_with_role(
    db: Session,
    user_id: int,
    roles: tuple[str, ...],
    detail: str = "Employee not found",
) -> User:
    user = db.query(User).filter(
        User.id == user_id,
        User.role.in_(roles),
        User.is_active == True,  # noqa: E712
    ).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )
    return user


def paginate(query, page: int, page_size: int) -> dict:
    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    total_pages = max((total + page_size - 1) // page_size, 1)
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
    }


EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
MIN_PASSWORD_LENGTH = 6


def _form_error(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def validate_email_field(email: str) -> str:
    cleaned = (email or "").strip()
    if not cleaned:
        raise _form_error("Please enter your email address.")
    if not EMAIL_PATTERN.fullmatch(cleaned):
        raise _form_error("Please enter a valid email address.")
    return cleaned.lower()


def validate_new_password(password: str, confirm_password: str) -> str:
    if not password:
        raise _form_error("Please enter your password.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise _form_error("Password must be at least 6 characters long.")
    if not confirm_password:
        raise _form_error("Please confirm your password.")
    if confirm_password != password:
        raise _form_error("Passwords do not match.")
    return password


def validate_registration(name: str, email: str, role: str, password: str, confirm_password: str) -> dict:
    """Checks the sign-up form in field order and stops at the first problem."""
    cleaned_name = (name or "").strip()
    if not cleaned_name:
        raise _form_error("Please enter your full name.")
    cleaned_email = validate_email_field(email)
    if not role or role not in ROLES:
        raise _form_error("Please select your role.")
    validate_new_password(password, confirm_password)
    return {"name": cleaned_name, "email": cleaned_email, "role": role}
