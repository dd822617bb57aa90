from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..db.database import Base, utcnow

NOTIFICATION_TYPES = (
    "NEW_PROPOSAL",
    "PROPOSAL_ACCEPTED",
    "PROPOSAL_REJECTED",
    "PROPOSAL_STATUS_UPDATED",
    "NEW_MESSAGE",
    "CONTRACT_CREATED",
    "CONTRACT_FUNDED",
    "CONTRACT_ACTIVATED",
    "MILESTONE_SUBMITTED",
    "MILESTONE_APPROVED",
    "MILESTONE_CHANGES_REQUESTED",
    "PAYMENT_RELEASED",
    "CONTRACT_COMPLETED",
    "POST_LIKED",
    "POST_COMMENTED",
    "POST_REACTION",
)

class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "read", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(String(40), nullable=False)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"))
    proposal_id = Column(Integer, ForeignKey("proposals.id", ondelete="SET NULL"))
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="SET NULL"))
    message_id = Column(Integer, ForeignKey("messages.id", ondelete="SET NULL"))
    message = Column(Text)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    sender = relationship("User", foreign_keys=[sender_id], lazy="selectin")

    def __repr__(self):
        return f"<Notification {self.type} -> {self.recipient_id}>"
