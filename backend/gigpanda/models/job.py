from sqlalchemy import Column, Integer, String, DateTime, Text, Float, JSON, ForeignKey
from sqlalchemy.orm import relationship

from ..db.database import Base, utcnow

CATEGORIES = (
    "web-development",
    "mobile-development",
    "ui-ux-design",
    "graphic-design",
    "content-writing",
    "digital-marketing",
    "data-analysis",
    "video-editing",
    "translation",
    "virtual-assistant",
    "other",
)
CURRENCIES = ("USD", "EUR", "GBP", "INR", "CAD", "AUD")
BUDGET_TYPES = ("fixed", "hourly")
# ordered by urgency, used by the "deadline" sort
TIMELINES = ("urgent", "1-week", "2-weeks", "1-month", "2-months", "3+ months")
EXPERIENCE_LEVELS = ("beginner", "intermediate", "expert")
LOCATIONS = ("remote", "on-site", "hybrid")
JOB_STATUSES = ("open", "in-progress", "completed", "cancelled", "closed")

class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category = Column(String(50), nullable=False, index=True)
    skills = Column(JSON, default=list)
    budget_min = Column(Float, nullable=False)
    budget_max = Column(Float, nullable=False)
    currency = Column(String(10), nullable=False, default="USD")
    budget_type = Column(String(20), nullable=False)
    timeline = Column(String(20), nullable=False)
    experience_level = Column(String(20), nullable=False)
    location = Column(String(20), nullable=False, default="remote")
    country = Column(String(100))
    status = Column(String(20), nullable=False, default="open", index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    client = relationship("User", lazy="selectin")
    proposals = relationship(
        "Proposal", back_populates="job", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<Job {self.title}>"
