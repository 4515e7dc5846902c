from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from hrportal.database.base import Base

TICKET_STATUSES = ("Open", "In Progress", "Closed")
TICKET_PRIORITIES = ("Low", "Medium", "High")


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    subject = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    priority = Column(String(20), default="Medium", nullable=True)
    status = Column(String(20), default="Open", nullable=False)
    file_url = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    owner = relationship("User")

    @property
    def name(self):
        return self.owner.name if self.owner else None

    @property
    def department(self):
        return self.owner.department if self.owner else None
