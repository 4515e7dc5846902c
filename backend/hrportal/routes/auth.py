import logging
import smtplib
import uuid
from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from hrportal.config import settings
from hrportal.database.session import get_db
from hrportal.models.user import User
from hrportal.models.user_session import UserSession
from hrportal.core.security import (
    REFRESH,
    RESET,
    create_access_token,
    create_refresh_token,
    create_reset_token,
    decode_token,
    hash_password,
    verify_password,
)
from hrportal.core.dependencies import (
    get_auth_state,
    get_current_user,
    oauth2_scheme,
    optional_oauth2_scheme,
    resolve_token_user,
)
from hrportal.core.realtime import notify_auth_state_change
from hrportal.core.role_guard import AuthState, landing_for, normalize_path, resolve_redirect
from hrportal.core.validation import (
    validate_email_field,
    validate_new_password,
    validate_registration,
)
from hrportal.schemas.user import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RedirectOut,
    RefreshRequest,
    RegisterRequest,
    SessionOut,
    SetNewPasswordRequest,
    TokenResponse,
)
from hrportal.utils.email import send_password_reset_link

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

INVALID_CREDENTIALS = "The email or password you entered is incorrect."
INVALID_RESET_LINK = "This reset link is invalid or has expired."


def _create_user_session(user_id: int, db: Session, now: datetime) -> UserSession:
    session = UserSession(
        session_id=f"{user_id}_{uuid.uuid4().hex}",
        user_id=user_id,
        last_seen_at=now,
        expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def _build_auth_response(user: User, session_id: str):
    token_payload = {
        "sub": str(user.id),
        "role": user.role,
        "sid": session_id
    }
    return {
        "access_token": create_access_token(token_payload),
        "refresh_token": create_refresh_token(token_payload),
        "token_type": "bearer",
        "force_password_change": user.force_password_change,
        "redirect_to": landing_for(user.role),
        "user": {
            "id": user.id,
            "name": user.name,
            "role": user.role
        }
    }


def _revoke_sessions(user_id: int, db: Session, now: datetime) -> int:
    sessions = db.query(UserSession).filter(
        UserSession.user_id == user_id,
        UserSession.revoked_at == None  # noqa: E711
    ).all()
    for session in sessions:
        session.revoked_at = now
    return len(sessions)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    fields = validate_registration(
        data.name, data.email, data.role, data.password, data.confirm_password
    )

    if db.query(User).filter(User.email == fields["email"]).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists."
        )

    user = User(
        name=fields["name"],
        email=fields["email"],
        role=fields["role"],
        password_hash=hash_password(data.password),
        is_active=True,
        force_password_change=False
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists."
        )
    db.refresh(user)
    logger.info("Registered user %s with role %s", user.id, user.role)

    return {
        "message": "Account created. You can now log in.",
        "user": {"id": user.id, "name": user.name, "role": user.role}
    }


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    email = validate_email_field(data.email)
    if not data.password:
        raise HTTPException(status_code=400, detail="Please enter your password.")

    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is inactive")

    now = datetime.now(timezone.utc)
    session = _create_user_session(user.id, db, now)
    logger.info("User %s signed in", user.id)
    notify_auth_state_change(user.id, "SIGNED_IN", session.session_id)
    return _build_auth_response(user, session.session_id)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(data: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(data.refresh_token, REFRESH)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    sub = payload.get("sub")
    sid = payload.get("sid")
    if not sub or not sid:
        raise HTTPException(status_code=401, detail="Invalid refresh token payload")

    try:
        user_id = int(sub)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid refresh token subject")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not available")

    now = datetime.now(timezone.utc)
    session = db.query(UserSession).filter(
        UserSession.session_id == sid,
        UserSession.user_id == user_id,
        UserSession.revoked_at == None  # noqa: E711
    ).first()

    expires_at = session.expires_at if session else None
    if expires_at is not None and expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if not session or expires_at < now:
        raise HTTPException(status_code=401, detail="Refresh session expired")

    session.last_seen_at = now
    session.expires_at = now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    db.commit()

    notify_auth_state_change(user.id, "TOKEN_REFRESHED", session.session_id)
    return _build_auth_response(user, session.session_id)


@router.get("/session", response_model=SessionOut)
def get_session(
    db: Session = Depends(get_db),
    token: str | None = Depends(optional_oauth2_scheme)
):
    if not token:
        return {"authenticated": False}
    try:
        user = resolve_token_user(db, token)
    except HTTPException:
        return {"authenticated": False}

    return {
        "authenticated": True,
        "session_id": user.session_id,
        "user": {"id": user.id, "name": user.name, "role": user.role}
    }


@router.get("/redirect", response_model=RedirectOut)
def get_redirect(
    path: str = Query("/"),
    auth: AuthState = Depends(get_auth_state)
):
    return {
        "path": normalize_path(path),
        "authenticated": auth.authenticated,
        "role": auth.role,
        "redirect_to": resolve_redirect(path, auth)
    }


@router.post("/change-password")
def change_password(
    data: ChangePasswordRequest,
    current_user=Depends(get_current_user),
    db: Session = Depends(get_db)
):
    validate_new_password(data.new_password, data.confirm_password)
    current_user.password_hash = hash_password(data.new_password)
    current_user.force_password_change = False
    db.commit()

    notify_auth_state_change(current_user.id, "USER_UPDATED", current_user.session_id)
    return {"message": "Password updated successfully"}


@router.post("/forgot-password")
def forgot_password(
    data: ForgotPasswordRequest,
    db: Session = Depends(get_db)
):
    email = validate_email_field(data.email)

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(
            status_code=404,
            detail="We could not find an account with that email address."
        )
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is inactive")

    reset_token = create_reset_token(user.id, user.password_hash)
    try:
        send_password_reset_link(
            to_email=user.email,
            reset_token=reset_token,
            employee_name=user.name
        )
    except (smtplib.SMTPException, OSError):
        logger.exception("Password reset email to user %s failed", user.id)
        raise HTTPException(status_code=503, detail="Unable to send reset email. Please try again.")

    notify_auth_state_change(user.id, "PASSWORD_RECOVERY")
    return {"message": "Password reset email sent! Please check your inbox."}


@router.post("/set-new-password")
def set_new_password(
    data: SetNewPasswordRequest,
    db: Session = Depends(get_db)
):
    payload = decode_token(data.token, RESET)
    if payload is None:
        raise HTTPException(status_code=400, detail=INVALID_RESET_LINK)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=INVALID_RESET_LINK)

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active or payload.get("pwd") != user.password_hash[-12:]:
        raise HTTPException(status_code=400, detail=INVALID_RESET_LINK)

    validate_new_password(data.password, data.confirm_password)

    now = datetime.now(timezone.utc)
    user.password_hash = hash_password(data.password)
    user.force_password_change = False
    revoked = _revoke_sessions(user.id, db, now)
    db.commit()

    logger.info("Password reset for user %s, %s sessions revoked", user.id, revoked)
    notify_auth_state_change(user.id, "USER_UPDATED")
    return {"message": "Password updated successfully! Redirecting to login..."}


@router.post("/logout")
def logout(
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme),
    current_user=Depends(get_current_user)
):
    payload = decode_token(token)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    sid = payload.get("sid")
    now = datetime.now(timezone.utc)

    if sid:
        session = db.query(UserSession).filter(
            UserSession.session_id == sid,
            UserSession.user_id == current_user.id,
            UserSession.revoked_at == None  # noqa: E711
        ).first()
        if session:
            session.revoked_at = now
            db.commit()

    notify_auth_state_change(current_user.id, "SIGNED_OUT", sid)
    return {"message": "Logged out successfully"}
