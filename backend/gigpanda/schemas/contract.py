from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .common import CamelModel
from .user import UserSummary

class FundRequest(CamelModel):
    amount: float = Field(gt=0)

class ReviewRequest(CamelModel):
    status: str = Field(pattern="^(approved|changes_requested)$")
    feedback: Optional[str] = None

class SubmissionFile(CamelModel):
    filename: str
    storage_key: str
    mimetype: str
    size: int

class SubmissionOut(CamelModel):
    id: int
    files: List[SubmissionFile] = []
    comments: Optional[str] = ""
    submitted_at: datetime
    status: str
    client_feedback: Optional[str] = ""
    feedback_at: Optional[datetime] = None

class MilestoneOut(CamelModel):
    id: int
    title: str
    description: str
    amount: float
    due_date: datetime
    status: str
    escrow_funded: bool = False
    current_submission: Optional[SubmissionOut] = None
    submission_history: List[SubmissionOut] = []

class ContractOut(CamelModel):
    id: int
    job_id: int
    proposal_id: int
    client_id: int
    freelancer_id: int
    title: str
    scope: str
    terms: str
    total_amount: float
    status: str
    escrow_balance: float
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    client_signed_at: Optional[datetime] = None
    freelancer_signed_at: Optional[datetime] = None
    milestones: List[MilestoneOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

def contract_out(contract) -> dict:
    data = ContractOut.model_validate(contract).model_dump(mode="json", by_alias=True)
    if contract.job is not None:
        data["job"] = {"id": contract.job.id, "title": contract.job.title, "status": contract.job.status}
    for party in ("client", "freelancer"):
        user = getattr(contract, party)
        if user is not None:
            data[party] = UserSummary.model_validate(user).model_dump(mode="json", by_alias=True)
    return data
