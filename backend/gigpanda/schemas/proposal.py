from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from .common import CamelModel
from .user import UserSummary

class ProposalStatusUpdate(CamelModel):
    status: str = Field(pattern="^(pending|accepted|declined|interviewing)$")
    client_notes: Optional[str] = Field(default=None, max_length=1000)

class ProposalOut(CamelModel):
    id: int
    job_id: int
    freelancer_id: int
    cover_letter: str
    estimated_duration: str
    attachments: List[Dict[str, Any]] = []
    status: str
    client_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

def proposal_out(proposal, with_freelancer: bool = True, with_job: bool = False) -> dict:
    data = ProposalOut.model_validate(proposal).model_dump(mode="json", by_alias=True)
    data["bidAmount"] = {"amount": proposal.bid_amount, "currency": proposal.bid_currency}
    if with_freelancer and proposal.freelancer is not None:
        data["freelancer"] = UserSummary.model_validate(proposal.freelancer).model_dump(mode="json", by_alias=True)
    if with_job and proposal.job is not None:
        job = proposal.job
        data["job"] = {
            "id": job.id,
            "title": job.title,
            "status": job.status,
            "category": job.category,
            "timeline": job.timeline,
            "experienceLevel": job.experience_level,
            "location": job.location,
            "budget": {"min": job.budget_min, "max": job.budget_max, "currency": job.currency},
            "clientId": job.client_id,
        }
    return data
