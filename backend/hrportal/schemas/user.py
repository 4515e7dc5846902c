from pydantic import BaseModel, EmailStr, field_validator
from datetime import date, datetime
from typing import Literal, Optional
import re

RoleName = Literal["ceo", "hr", "team_leader", "employee"]

PHONE_REGEX = re.compile(r"^\+?\d{7,15}$")


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class RegisterRequest(BaseModel):
    name: str = ""
    email: str = ""
    role: str = ""
    password: str = ""
    confirm_password: str = ""


class UserInfo(BaseModel):
    id: int
    name: str
    role: Optional[str] = None

    model_config = {
        "from_attributes": True
    }


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str
    force_password_change: bool
    redirect_to: str
    user: UserInfo


class RefreshRequest(BaseModel):
    refresh_token: str


class ForgotPasswordRequest(BaseModel):
    email: str = ""


class SetNewPasswordRequest(BaseModel):
    token: str
    password: str = ""
    confirm_password: str = ""


class ChangePasswordRequest(BaseModel):
    new_password: str
    confirm_password: str


class SessionOut(BaseModel):
    authenticated: bool
    session_id: Optional[str] = None
    user: Optional[UserInfo] = None


class RedirectOut(BaseModel):
    path: str
    authenticated: bool
    role: Optional[str] = None
    redirect_to: Optional[str] = None


class EmployeeCreate(BaseModel):
    name: str
    email: EmailStr
    role: RoleName = "employee"
    department: str | None = None
    designation: str | None = None
    phone: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str):
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Name is required")
        return cleaned


class EmployeeCreateResponse(BaseModel):
    id: int
    employee_id: str
    email: EmailStr


class EmployeeUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[RoleName] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    phone: Optional[str] = None
    is_active: Optional[bool] = None


class EmployeeOut(BaseModel):
    id: int
    employee_id: Optional[str] = None
    name: str
    email: str
    role: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    phone: Optional[str] = None
    profile_image: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }


class EmployeeStats(BaseModel):
    projects_assigned: int
    working_days: int
    leaves_taken: int
    absent_days: int


# ---------------- PROFILE ----------------

class ProfileUpdateSchema(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def normalize_optional_strings(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: Optional[str]):
        if value is None:
            return value
        if not PHONE_REGEX.fullmatch(value):
            raise ValueError("Phone must contain 7 to 15 digits")
        return value

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, value: Optional[date]):
        if value is not None and value >= date.today():
            raise ValueError("Date of birth must be in the past")
        return value


class ProfileResponse(EmployeeOut):
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
