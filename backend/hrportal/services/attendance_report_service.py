from calendar import monthrange
from datetime import date, timedelta

from sqlalchemy.orm import Session

from hrportal.models.attendance import AttendanceRecord
from hrportal.models.leave import Leave
from hrportal.models.user import User
from hrportal.services.attendance_service import ensure_aware_utc, attendance_tz

SHORT_LEAVE = "Short Leave"
SHORT_LEAVE_SECONDS = 2 * 3600

STATUS_PRESENT = "Present"
STATUS_ABSENT = "Absent"
STATUS_ON_LEAVE = "On Leave"
STATUS_WEEKEND = "Weekend Holiday"

PERIOD_DAYS = {"Weekly": 7, "BiWeekly": 14, "Monthly": 30}


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def format_hours_minutes(seconds: int) -> str:
    hours, remainder = divmod(max(int(seconds), 0), 3600)
    return f"{hours:02d}:{remainder // 60:02d}"


def format_duration(seconds: int) -> str:
    if seconds <= 0:
        return "-"
    hours, remainder = divmod(int(seconds), 3600)
    return f"{hours}h {remainder // 60}m"


def format_hhmm(value) -> str:
    if value is None:
        return "-"
    return ensure_aware_utc(value).astimezone(attendance_tz()).strftime("%H:%M")


def _approved_leaves(db: Session, start: date, end: date, user_ids=None) -> list[Leave]:
    query = db.query(Leave).filter(
        Leave.status == "Approved",
        Leave.from_date <= end,
        Leave.to_date >= start,
    )
    if user_ids is not None:
        query = query.filter(Leave.user_id.in_(list(user_ids)))
    return query.all()


def _leave_flags(leaves: list[Leave], day: date) -> tuple[bool, bool]:
    """(on_leave, short_leave) for one user's approved leaves on ``day``."""
    on_leave = any(
        leave.from_date <= day <= leave.to_date and leave.leave_type != SHORT_LEAVE
        for leave in leaves
    )
    short_leave = any(
        leave.leave_type == SHORT_LEAVE and leave.from_date == day
        for leave in leaves
    )
    return on_leave, short_leave


def classify_day(record: AttendanceRecord | None, on_leave: bool, day: date) -> str:
    if on_leave:
        return STATUS_ON_LEAVE
    if record is not None and (record.first_punch_in or record.punch_in):
        return STATUS_PRESENT
    if is_weekend(day):
        return STATUS_WEEKEND
    return STATUS_ABSENT


def monthly_history(db: Session, user: User, year: int, month: int, today: date) -> dict:
    first_day = date(year, month, 1)
    last_day = date(year, month, monthrange(year, month)[1])
    if first_day > today:
        return {"month": month, "year": year, "records": [], "stats": _empty_stats()}
    last_day = min(last_day, today)

    records = db.query(AttendanceRecord).filter(
        AttendanceRecord.user_id == user.id,
        AttendanceRecord.date >= first_day,
        AttendanceRecord.date <= last_day
    ).all()
    by_date = {r.date: r for r in records}
    leaves = _approved_leaves(db, first_day, last_day, user_ids=[user.id])

    rows = []
    stats = _empty_stats()
    current = first_day
    while current <= last_day:
        record = by_date.get(current)
        on_leave, short_leave = _leave_flags(leaves, current)
        status = classify_day(record, on_leave, current)

        total_seconds = int(record.total_seconds or 0) if record else 0
        if short_leave:
            total_seconds = max(0, total_seconds - SHORT_LEAVE_SECONDS)

        stats[_stat_key(status)] += 1
        stats["total_seconds"] += total_seconds

        rows.append({
            "date": current,
            "name": user.name,
            "status": status,
            "punch_in": (record.first_punch_in or record.punch_in) if record else None,
            "punch_out": record.punch_out if record else None,
            "total_seconds": total_seconds,
            "total_time": format_hours_minutes(total_seconds),
            "short_leave": short_leave,
        })
        current += timedelta(days=1)

    rows.sort(key=lambda row: row["date"], reverse=True)
    return {"month": month, "year": year, "records": rows, "stats": stats}


def _empty_stats() -> dict:
    return {"present_days": 0, "absent_days": 0, "leave_days": 0, "weekend_days": 0, "total_seconds": 0}


def _stat_key(status: str) -> str:
    return {
        STATUS_PRESENT: "present_days",
        STATUS_ABSENT: "absent_days",
        STATUS_ON_LEAVE: "leave_days",
        STATUS_WEEKEND: "weekend_days",
    }[status]


def daily_overview(
    db: Session,
    day: date,
    users: list[User],
    department: str | None = None,
    search: str | None = None,
) -> list[dict]:
    if department and department.lower() != "all departments":
        users = [u for u in users if (u.department or "").lower() == department.lower()]
    if search:
        needle = search.strip().lower()
        users = [u for u in users if needle in (u.name or "").lower()]
    if not users:
        return []

    user_ids = [u.id for u in users]
    records = db.query(AttendanceRecord).filter(
        AttendanceRecord.date == day,
        AttendanceRecord.user_id.in_(user_ids)
    ).all()
    by_user = {r.user_id: r for r in records}
    leaves = _approved_leaves(db, day, day, user_ids=user_ids)

    rows = []
    for user in sorted(users, key=lambda u: u.name or ""):
        record = by_user.get(user.id)
        on_leave, short_leave = _leave_flags(
            [leave for leave in leaves if leave.user_id == user.id], day
        )

        status = classify_day(record, on_leave, day)
        total_seconds = int(record.total_seconds or 0) if record else 0
        if short_leave:
            total_seconds = max(total_seconds - SHORT_LEAVE_SECONDS, 0)

        rows.append({
            "user_id": user.id,
            "name": user.name,
            "department": user.department or "-",
            "date": day,
            "status": status,
            "check_in": format_hhmm(record.first_punch_in or record.punch_in) if record else "-",
            "check_out": format_hhmm(record.punch_out) if record else "-",
            "total_hours": format_duration(total_seconds),
            "short_leave": "2 Hours" if short_leave else "-",
        })
    return rows


def department_presence(db: Session, period: str, today: date) -> list[dict]:
    """Share of expected weekday attendance actually punched, per department."""
    days = PERIOD_DAYS[period]
    start = today - timedelta(days=days - 1)
    weekdays = [start + timedelta(days=i) for i in range(days) if not is_weekend(start + timedelta(days=i))]

    users = db.query(User).filter(
        User.is_active == True,  # noqa: E712
        User.role.in_(("employee", "team_leader", "hr")),
    ).all()
    by_department: dict[str, list[int]] = {}
    for user in users:
        by_department.setdefault(user.department or "Unassigned", []).append(user.id)

    present = db.query(AttendanceRecord.user_id, AttendanceRecord.date).filter(
        AttendanceRecord.date >= start,
        AttendanceRecord.date <= today,
    ).all()
    present_pairs = {(user_id, day) for user_id, day in present}

    result = []
    for department in sorted(by_department):
        member_ids = by_department[department]
        expected = len(member_ids) * len(weekdays)
        hits = sum(1 for uid in member_ids for day in weekdays if (uid, day) in present_pairs)
        percent = round(hits / expected * 100, 1) if expected else 0.0
        result.append({"department": department, "members": len(member_ids), "presence_percent": percent})
    return result
