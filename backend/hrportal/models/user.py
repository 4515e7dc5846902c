from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from hrportal.database.base import Base

ROLES = ("ceo", "hr", "team_leader", "employee")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    employee_id = Column(String(20), unique=True, index=True, nullable=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)

    password_hash = Column(String, nullable=False)

    role = Column(String(20), nullable=True)  # ceo | hr | team_leader | employee

    department = Column(String(100), nullable=True)
    designation = Column(String(100), nullable=True)

    # profile fields, editable by the user
    phone = Column(String(30), nullable=True)
    address = Column(Text, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    profile_image = Column(String, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    force_password_change = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
