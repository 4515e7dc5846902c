from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from hrportal.database.base import Base

LEAVE_TYPES = ("Medical Leave", "Short Leave", "Casual Leave", "Paid Leave", "Other")
LEAVE_STATUS_ORDER = {"Pending": 0, "Approved": 1, "Rejected": 2}


class Leave(Base):
    __tablename__ = "leaves"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    leave_type = Column(String(50), nullable=False)

    from_date = Column(Date, nullable=False)
    to_date = Column(Date, nullable=False)

    reason = Column(Text, nullable=False)

    status = Column(String(20), default="Pending", nullable=False)
    # Pending | Approved | Rejected

    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    employee = relationship("User", foreign_keys=[user_id])
    reviewer = relationship("User", foreign_keys=[reviewed_by])

    @property
    def total_days(self) -> int:
        return (self.to_date - self.from_date).days + 1
