from datetime import datetime
from typing import List, Optional

from .common import CamelModel
from .user import UserSummary

class MarkReadRequest(CamelModel):
    notification_ids: List[int]

class NotificationOut(CamelModel):
    id: int
    recipient_id: int
    sender_id: int
    type: str
    job_id: Optional[int] = None
    proposal_id: Optional[int] = None
    post_id: Optional[int] = None
    message_id: Optional[int] = None
    message: Optional[str] = None
    read: bool
    created_at: Optional[datetime] = None

def notification_out(notification, with_sender: bool = True) -> dict:
    data = NotificationOut.model_validate(notification).model_dump(mode="json", by_alias=True)
    if with_sender and notification.sender is not None:
        data["sender"] = UserSummary.model_validate(notification.sender).model_dump(mode="json", by_alias=True)
    return data
