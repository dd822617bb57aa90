from datetime import datetime
from enum import Enum
from typing import List, Optional

from .common import CamelModel
from .user import UserSummary

class JobSort(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    BUDGET_HIGH = "budget-high"
    BUDGET_LOW = "budget-low"
    DEADLINE = "deadline"

class JobStatusUpdate(CamelModel):
    status: str

class Budget(CamelModel):
    min: float
    max: float
    currency: str = "USD"

class JobOut(CamelModel):
    id: int
    title: str
    description: str
    client_id: int
    category: str
    skills: List[str] = []
    budget_type: str
    timeline: str
    experience_level: str
    location: str
    country: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

def job_out(job, proposal_count: Optional[int] = None, with_client: bool = True) -> dict:
    data = JobOut.model_validate(job).model_dump(mode="json", by_alias=True)
    data["skillsRequired"] = data["skills"]
    data["budget"] = Budget(min=job.budget_min, max=job.budget_max, currency=job.currency).model_dump()
    if with_client and job.client is not None:
        data["client"] = UserSummary.model_validate(job.client).model_dump(mode="json", by_alias=True)
    if proposal_count is not None:
        data["proposalCount"] = proposal_count
    return data
