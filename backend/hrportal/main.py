import logging
import logging.config
import os

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from hrportal.config import settings
from hrportal.core.dependencies import resolve_token_user
from hrportal.core.realtime import WATCHED_TABLES, realtime_hub
from hrportal.database.base import Base
from hrportal.database.session import engine, get_db
from hrportal.models.attendance import AttendanceRecord  # noqa: F401
from hrportal.models.leave import Leave  # noqa: F401
from hrportal.models.project import Project  # noqa: F401
from hrportal.models.task import Task  # noqa: F401
from hrportal.models.ticket import Ticket  # noqa: F401
from hrportal.models.user import User  # noqa: F401
from hrportal.models.user_session import UserSession  # noqa: F401
from hrportal.routes import (
    attendance,
    auth,
    employees,
    leaves,
    profile,
    projects,
    storage,
    tasks,
    tickets,
)

logging.config.dictConfig(settings.get_logging_config())
logger = logging.getLogger(__name__)

STAFF_ROLES = ("hr", "ceo")

app = FastAPI(title="HR Portal")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def create_tables():
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


def _format_validation_messages(exc: RequestValidationError) -> list[str]:
    messages: list[str] = []
    for err in exc.errors():
        loc = [str(v) for v in err.get("loc", []) if str(v) not in {"body", "query", "path"}]
        field = ".".join(loc) if loc else ""
        err_type = str(err.get("type", ""))
        message = str(err.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]

        if err_type == "missing":
            messages.append(f"{field} is required")
        elif "string_too_short" in err_type:
            messages.append(f"{field} cannot be empty")
        elif err_type == "value_error" or not field:
            messages.append(message)
        else:
            messages.append(f"{field}: {message}")

    # Preserve order while de-duplicating.
    return list(dict.fromkeys(messages))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = _format_validation_messages(exc)
    detail = messages[0] if len(messages) == 1 else "Validation failed"
    return JSONResponse(
        status_code=422,
        content={
            "detail": detail,
            "errors": messages,
        },
    )


app.include_router(auth.router)
app.include_router(attendance.router)
app.include_router(employees.router)
app.include_router(profile.router)
app.include_router(leaves.router)
app.include_router(projects.router)
app.include_router(tasks.router)
app.include_router(tickets.router)
app.include_router(storage.router)

# must follow the storage router: the mount matches every /storage path
os.makedirs(settings.STORAGE_DIR, exist_ok=True)
app.mount("/storage", StaticFiles(directory=settings.STORAGE_DIR), name="storage")


@app.get("/health")
def health():
    return {"status": "ok"}


def _authenticate_socket(db: Session, token: str | None) -> tuple[int, str | None] | None:
    """(user id, role) for a live session token; the db session is released."""
    if not token:
        return None
    try:
        user = resolve_token_user(db, token)
        return user.id, user.role
    except HTTPException:
        return None
    finally:
        db.close()


@app.websocket("/ws/auth")
async def auth_state_ws(websocket: WebSocket, db: Session = Depends(get_db)):
    identity = _authenticate_socket(db, websocket.query_params.get("token"))
    if identity is None:
        await websocket.close(code=4401, reason="Invalid session")
        return

    user_id, _role = identity
    await realtime_hub.subscribe("auth", websocket, user_id)
    await realtime_hub.hold_open("auth", websocket)


@app.websocket("/ws/{table}")
async def table_changes_ws(websocket: WebSocket, table: str, db: Session = Depends(get_db)):
    if table not in WATCHED_TABLES:
        await websocket.close(code=4404, reason="Unknown table")
        return

    identity = _authenticate_socket(db, websocket.query_params.get("token"))
    if identity is None:
        await websocket.close(code=4401, reason="Invalid session")
        return

    user_id, role = identity
    requested = websocket.query_params.get("user_id")
    if role in STAFF_ROLES:
        try:
            filter_user_id = int(requested) if requested else None
        except ValueError:
            await websocket.close(code=4400, reason="Invalid user_id")
            return
    else:
        # everyone else only hears about their own rows
        filter_user_id = user_id

    await realtime_hub.subscribe(table, websocket, filter_user_id)
    await realtime_hub.hold_open(table, websocket)
