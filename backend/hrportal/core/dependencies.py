import logging
from datetime import datetime, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrportal.core.role_guard import UNAUTHENTICATED, AuthState
from hrportal.core.security import ACCESS, decode_token
from hrportal.database.session import get_db
from hrportal.models.user import User
from hrportal.models.user_session import UserSession

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def resolve_token_user(db: Session, token: str) -> User:
    """Validate an access token against its server-side session.

    Raises 401 for anything that does not resolve to an active user with a
    live session. The session's ``last_seen_at`` is bumped on success.
    """
    payload = decode_token(token)
    if payload is None:
        raise _unauthorized("Invalid or expired token")
    if payload.get("token_type") != ACCESS:
        raise _unauthorized("Invalid token type")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token subject")

    session_id = payload.get("sid")
    if not session_id:
        raise _unauthorized("Session not found")

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise _unauthorized("User not found")

    now = datetime.now(timezone.utc)
    session = db.query(UserSession).filter(
        UserSession.session_id == session_id,
        UserSession.user_id == user_id,
        UserSession.revoked_at == None  # noqa: E711
    ).first()
    if session is None or _as_utc(session.expires_at) < now:
        raise _unauthorized("Session expired")

    session.last_seen_at = now
    db.commit()

    user.session_id = session_id
    return user


def get_current_user(
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme)
):
    return resolve_token_user(db, token)


def require_roles(*roles: str):
    def dependency(current_user: User = Depends(get_current_user)):
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have access to this resource"
            )
        return current_user

    return dependency


get_current_hr = require_roles("hr", "ceo")
get_current_ceo = require_roles("ceo")
get_current_team_leader = require_roles("team_leader")


def get_auth_state(
    db: Session = Depends(get_db),
    token: str | None = Depends(optional_oauth2_scheme)
) -> AuthState:
    """Current session and role; any failure counts as signed out."""
    if not token:
        return UNAUTHENTICATED
    try:
        user = resolve_token_user(db, token)
    except HTTPException:
        return UNAUTHENTICATED
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Auth state lookup failed")
        return UNAUTHENTICATED

    if not user.role:
        return UNAUTHENTICATED
    return AuthState(authenticated=True, role=user.role, user_id=user.id)
