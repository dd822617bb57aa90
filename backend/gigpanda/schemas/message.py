from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from .common import CamelModel
from .user import UserSummary

class SendMessageRequest(CamelModel):
    receiver_id: int
    content: str = Field(min_length=1)
    job_id: Optional[int] = None
    proposal_id: Optional[int] = None

class MessageOut(CamelModel):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    attachments: List[Dict[str, Any]] = []
    is_read: bool
    job_id: Optional[int] = None
    proposal_id: Optional[int] = None
    created_at: Optional[datetime] = None
    sender: Optional[UserSummary] = None
    receiver: Optional[UserSummary] = None
