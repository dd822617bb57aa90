from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text,
)
from sqlalchemy.orm import relationship

from ..db.database import Base, utcnow

CONTRACT_STATUSES = ("draft", "funded", "active", "completed", "closed", "cancelled")
MILESTONE_STATUSES = (
    "pending", "funded", "in_progress", "submitted", "changes_requested", "completed", "paid",
)
SUBMISSION_STATUSES = ("pending", "approved", "changes_requested")

class Contract(Base):
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    # one contract per accepted proposal
    proposal_id = Column(Integer, ForeignKey("proposals.id"), nullable=False, unique=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    freelancer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    scope = Column(Text, nullable=False)
    terms = Column(Text, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default="draft", index=True)
    escrow_balance = Column(Float, nullable=False, default=0)
    start_date = Column(DateTime(timezone=True))
    end_date = Column(DateTime(timezone=True))
    client_signed_at = Column(DateTime(timezone=True))
    freelancer_signed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    job = relationship("Job", lazy="selectin")
    client = relationship("User", foreign_keys=[client_id], lazy="selectin")
    freelancer = relationship("User", foreign_keys=[freelancer_id], lazy="selectin")
    milestones = relationship(
        "Milestone",
        back_populates="contract",
        order_by="Milestone.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def milestone(self, milestone_id: int):
        for milestone in self.milestones:
            if milestone.id == milestone_id:
                return milestone
        return None

    def is_party(self, user_id: int) -> bool:
        return user_id in (self.client_id, self.freelancer_id)

    def __repr__(self):
        return f"<Contract {self.id} {self.status}>"

class Milestone(Base):
    __tablename__ = "milestones"

    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Float, nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    escrow_funded = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    contract = relationship("Contract", back_populates="milestones")
    submissions = relationship(
        "Submission",
        back_populates="milestone",
        order_by=lambda: [Submission.submitted_at.desc(), Submission.id.desc()],
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def current_submission(self):
        for submission in self.submissions:
            if submission.is_current:
                return submission
        return None

    @property
    def submission_history(self):
        """Archived submissions, newest first."""
        return [s for s in self.submissions if not s.is_current]

    def __repr__(self):
        return f"<Milestone {self.id} {self.title} {self.status}>"

class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)
    milestone_id = Column(Integer, ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True)
    # false once superseded by a resubmission or closed by a review
    is_current = Column(Boolean, nullable=False, default=True)
    files = Column(JSON, default=list)  # [{filename, storageKey, mimetype, size}]
    comments = Column(Text, default="")
    submitted_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    status = Column(String(20), nullable=False, default="pending")
    client_feedback = Column(Text, default="")
    feedback_at = Column(DateTime(timezone=True))

    milestone = relationship("Milestone", back_populates="submissions")

    def find_file(self, storage_key: str):
        for f in self.files or []:
            if f.get("storageKey") == storage_key:
                return f
        return None
