from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from hrportal.database.base import Base

PROJECT_STATUSES = ("Inprogress", "Completed", "On Hold")
PRIORITIES = ("High", "Medium", "Low")


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    client_name = Column(String(255), nullable=True)
    description = Column(Text)

    status = Column(String(20), default="Inprogress", nullable=False)
    priority = Column(String(20), default="High", nullable=False)

    start_date = Column(Date)
    due_date = Column(Date)

    # team leader running the project
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    # department label, e.g. "Web Designer"
    team = Column(String(100), nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    manager = relationship("User", foreign_keys=[manager_id])
    creator = relationship("User", foreign_keys=[created_by])

    tasks = relationship(
        "Task",
        back_populates="project",
        cascade="all, delete-orphan"
    )

    @property
    def manager_name(self):
        return self.manager.name if self.manager else None
