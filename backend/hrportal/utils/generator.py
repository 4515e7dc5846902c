import secrets
import string
from datetime import datetime


def next_employee_id(last_employee_id: str | None, year: int | None = None) -> str:
    """EMP<year><seq>, continuing the sequence of the highest id issued this year."""
    prefix = f"EMP{year or datetime.now().year}"
    sequence = 1
    if last_employee_id and last_employee_id.startswith(prefix):
        tail = last_employee_id[len(prefix):]
        if tail.isdigit():
            sequence = int(tail) + 1
    return f"{prefix}{sequence:04d}"


def generate_temp_password(length: int = 10) -> str:
    chars = string.ascii_letters + string.digits + "@$#"
    return "".join(secrets.choice(chars) for _ in range(length))
