from sqlalchemy import Column, Integer, String, DateTime, Text, Float, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.database import Base, utcnow

PROPOSAL_CURRENCIES = ("USD", "EUR", "GBP")
DURATIONS = ("less-than-1-month", "1-3-months", "3-6-months", "more-than-6-months")
PROPOSAL_STATUSES = ("pending", "accepted", "declined", "interviewing")

class Proposal(Base):
    __tablename__ = "proposals"
    __table_args__ = (
        UniqueConstraint("job_id", "freelancer_id", name="uq_proposal_job_freelancer"),
    )

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    freelancer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    cover_letter = Column(Text, nullable=False)
    bid_amount = Column(Float, nullable=False)
    bid_currency = Column(String(10), nullable=False, default="USD")
    estimated_duration = Column(String(30), nullable=False)
    attachments = Column(JSON, default=list)
    status = Column(String(20), nullable=False, default="pending", index=True)
    client_notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    job = relationship("Job", back_populates="proposals", lazy="selectin")
    freelancer = relationship("User", lazy="selectin")

    def __repr__(self):
        return f"<Proposal job={self.job_id} freelancer={self.freelancer_id} {self.status}>"
