import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from threading import Lock

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hrportal.config import settings
from hrportal.core.realtime import notify_table_change
from hrportal.models.attendance import AttendanceRecord

logger = logging.getLogger(__name__)

PRESENT = "Present"
BACKEND_FAILURE_DETAIL = "Unable to update attendance. Please try again."


def attendance_tz() -> timezone:
    return timezone(timedelta(minutes=settings.ATTENDANCE_UTC_OFFSET_MINUTES))


def ensure_aware_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _utc_now(now: datetime | None = None) -> datetime:
    return ensure_aware_utc(now or datetime.now(timezone.utc))


def get_local_date(now: datetime | None = None) -> date:
    return _utc_now(now).astimezone(attendance_tz()).date()


def end_of_day_utc(day: date) -> datetime:
    next_midnight = datetime.combine(day + timedelta(days=1), time.min, tzinfo=attendance_tz())
    return next_midnight.astimezone(timezone.utc)


def format_hms(total_seconds: int) -> str:
    total_seconds = max(int(total_seconds), 0)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_clock(value: datetime | None) -> str | None:
    if value is None:
        return None
    return ensure_aware_utc(value).astimezone(attendance_tz()).strftime("%I:%M %p")


@dataclass
class AttendanceState:
    date: date
    record_id: int | None = None
    punch_in_time: datetime | None = None
    punch_out_time: datetime | None = None
    first_punch_in: datetime | None = None
    accumulated_seconds: int = 0

    @property
    def is_live(self) -> bool:
        return self.punch_in_time is not None

    def current_total(self, now: datetime | None = None) -> int:
        if not self.is_live:
            return self.accumulated_seconds
        elapsed = int((_utc_now(now) - self.punch_in_time).total_seconds())
        return self.accumulated_seconds + max(elapsed, 0)

    def progress_percent(self, now: datetime | None = None) -> float:
        target = settings.STANDARD_WORK_HOURS * 3600
        if target <= 0:
            return 0.0
        return round(min(self.current_total(now) / target * 100, 100.0), 2)

    @property
    def button_text(self) -> str:
        return "Punch Out" if self.is_live else "Punch In"

    @property
    def status_label(self) -> str:
        if self.is_live:
            return f"Punch In at {format_clock(self.punch_in_time)}"
        if self.accumulated_seconds > 0:
            return "Punched Out"
        return "Not Punched In"

    def snapshot(self, now: datetime | None = None) -> dict:
        current = _utc_now(now)
        total = self.current_total(current)
        return {
            "record_id": self.record_id,
            "date": self.date,
            "is_live": self.is_live,
            "punch_in_time": self.punch_in_time,
            "punch_out_time": self.punch_out_time,
            "first_punch_in": self.first_punch_in,
            "accumulated_seconds": self.accumulated_seconds,
            "total_seconds": total,
            "total_hms": format_hms(total),
            "production_time": format_hms(total),
            "progress_percent": self.progress_percent(current),
            "button_text": self.button_text,
            "status_label": self.status_label,
            "server_time": current,
        }


def state_from_record(record: AttendanceRecord | None, today: date) -> AttendanceState:
    if record is None:
        return AttendanceState(date=today)

    is_open = record.punch_in is not None and record.punch_out is None
    return AttendanceState(
        date=record.date,
        record_id=record.id,
        punch_in_time=ensure_aware_utc(record.punch_in) if is_open else None,
        punch_out_time=ensure_aware_utc(record.punch_out) if record.punch_out else None,
        first_punch_in=ensure_aware_utc(record.first_punch_in) if record.first_punch_in else None,
        accumulated_seconds=int(record.total_seconds or 0),
    )


def _close_session(record: AttendanceRecord, close_at: datetime) -> int:
    punch_in = ensure_aware_utc(record.punch_in)
    effective_close = max(ensure_aware_utc(close_at), punch_in)
    session_seconds = int((effective_close - punch_in).total_seconds())
    record.total_seconds = int(record.total_seconds or 0) + session_seconds
    record.punch_out = effective_close
    return session_seconds


def close_stale_sessions(user_id: int, db: Session, today: date) -> list[AttendanceRecord]:
    """Close sessions left open on earlier days at the end of their own day."""
    stale = db.query(AttendanceRecord).filter(
        AttendanceRecord.user_id == user_id,
        AttendanceRecord.date < today,
        AttendanceRecord.punch_in != None,  # noqa: E711
        AttendanceRecord.punch_out == None  # noqa: E711
    ).all()
    for record in stale:
        seconds = _close_session(record, end_of_day_utc(record.date))
        logger.info(
            "Closed stale attendance session user=%s date=%s seconds=%s",
            user_id, record.date, seconds
        )
    return stale


def get_today_record(user_id: int, db: Session, today: date) -> AttendanceRecord | None:
    return db.query(AttendanceRecord).filter(
        AttendanceRecord.user_id == user_id,
        AttendanceRecord.date == today
    ).first()


class AttendanceReconciler:
    """Keeps one attendance record per user per day and toggles its session.

    A toggle for a user that already has one in flight is rejected without
    touching the database. Each toggle performs exactly one row write, and
    the resulting state is only returned after the commit succeeds.
    """

    def __init__(self):
        self._in_flight: set[int] = set()
        self._lock = Lock()

    def _begin(self, user_id: int) -> bool:
        with self._lock:
            if user_id in self._in_flight:
                return False
            self._in_flight.add(user_id)
            return True

    def _finish(self, user_id: int) -> None:
        with self._lock:
            self._in_flight.discard(user_id)

    def is_in_flight(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._in_flight

    def load_today(self, user_id: int, db: Session, now: datetime | None = None) -> AttendanceState:
        today = get_local_date(now)
        try:
            stale = close_stale_sessions(user_id, db, today)
            if stale:
                db.commit()
            record = get_today_record(user_id, db, today)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to load attendance for user %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Unable to load attendance. Please try again."
            )

        for closed in stale:
            notify_table_change("attendance", "UPDATE", closed.id, user_id)
        return state_from_record(record, today)

    def toggle(self, user_id: int, db: Session, now: datetime | None = None) -> AttendanceState:
        if not self._begin(user_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Punch toggle already in progress"
            )
        try:
            return self._toggle(user_id, db, _utc_now(now))
        finally:
            self._finish(user_id)

    def _toggle(self, user_id: int, db: Session, now: datetime) -> AttendanceState:
        today = get_local_date(now)
        try:
            stale = close_stale_sessions(user_id, db, today)
            record = get_today_record(user_id, db, today)

            if record is None:
                record = AttendanceRecord(
                    user_id=user_id,
                    date=today,
                    punch_in=now,
                    first_punch_in=now,
                    punch_out=None,
                    total_seconds=0,
                    status=PRESENT,
                )
                db.add(record)
                event = "INSERT"
                action = "punch_in"
            elif record.punch_in is None or record.punch_out is not None:
                # reopen: the new punch-in is persisted, the first one is kept
                record.punch_in = now
                record.punch_out = None
                if record.first_punch_in is None:
                    record.first_punch_in = now
                record.status = record.status or PRESENT
                event = "UPDATE"
                action = "punch_in"
            else:
                _close_session(record, now)
                event = "UPDATE"
                action = "punch_out"

            db.commit()
            db.refresh(record)
        except IntegrityError:
            db.rollback()
            logger.warning("Concurrent attendance insert for user %s on %s", user_id, today)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Attendance was updated elsewhere. Please refresh."
            )
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Attendance toggle failed for user %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=BACKEND_FAILURE_DETAIL
            )

        logger.info(
            "Attendance %s user=%s date=%s total_seconds=%s",
            action, user_id, today, record.total_seconds
        )
        for closed in stale:
            notify_table_change("attendance", "UPDATE", closed.id, user_id)
        notify_table_change("attendance", event, record.id, user_id)
        return state_from_record(record, today)


attendance_reconciler = AttendanceReconciler()
