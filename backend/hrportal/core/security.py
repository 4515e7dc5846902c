import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from hrportal.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"
RESET = "reset"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _issue(claims: dict, token_type: str, lifetime: timedelta) -> str:
    issued_at = datetime.now(timezone.utc)
    body = {
        **claims,
        "token_type": token_type,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + lifetime).timestamp()),
        "jti": claims.get("jti") or uuid.uuid4().hex,
    }
    return jwt.encode(body, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(claims: dict, minutes: int | None = None) -> str:
    lifetime = timedelta(minutes=minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _issue(claims, ACCESS, lifetime)


def create_refresh_token(claims: dict, days: int | None = None) -> str:
    lifetime = timedelta(days=days or settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _issue(claims, REFRESH, lifetime)


def create_reset_token(user_id: int, password_hash: str) -> str:
    # bound to the current hash: the link dies once the password changes
    claims = {"sub": str(user_id), "pwd": password_hash[-12:]}
    return _issue(claims, RESET, timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES))


def decode_token(token: str, expected_type: str | None = None) -> dict | None:
    """Claims of a valid, unexpired token, or None."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if expected_type and payload.get("token_type") != expected_type:
        return None
    return payload
