from dataclasses import dataclass
from typing import Optional

PUBLIC_ROUTES = ("/login", "/register", "/forgot-password", "/set-new-password")

ROLE_LANDING = {
    "ceo": "/",
    "team_leader": "/teamleader",
    "hr": "/hr",
    "employee": "/employees",
}

# reachable by every non-CEO role: the per-employee profile pages
SHARED_PREFIX = "/employee"


@dataclass(frozen=True)
class AuthState:
    authenticated: bool
    role: Optional[str] = None
    user_id: Optional[int] = None


UNAUTHENTICATED = AuthState(authenticated=False)


def normalize_path(path: str | None) -> str:
    if not path:
        return "/"
    cleaned = path.rstrip("/")
    return cleaned or "/"


def landing_for(role: str | None) -> str:
    return ROLE_LANDING.get(role or "", "/")


def resolve_redirect(path: str | None, auth: AuthState) -> str | None:
    """Return where the caller must be sent, or None if ``path`` is fine."""
    clean_path = normalize_path(path)
    is_public = clean_path in PUBLIC_ROUTES

    if auth.authenticated and is_public:
        landing = landing_for(auth.role)
        return landing if clean_path != landing else None

    if not auth.authenticated:
        return None if is_public else "/login"

    if not auth.role:
        return None

    if auth.role == "ceo":
        if clean_path != "/" and not clean_path.startswith("/ceo"):
            return "/"
        return None

    landing = landing_for(auth.role)
    if landing != "/":
        allowed_prefixes = (landing, SHARED_PREFIX)
        if not any(clean_path.startswith(prefix) for prefix in allowed_prefixes):
            return landing
    return None
