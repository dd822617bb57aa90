from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...db.database import get_db
from ...models.user import User
from ...schemas.proposal import ProposalStatusUpdate, proposal_out
from ...services import proposals as proposal_service
from ..deps import get_current_user

router = APIRouter()

@router.get("/my-proposals")
async def my_proposals(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    proposals = await proposal_service.get_my_proposals(db, user)
    return {"success": True, "proposals": [proposal_out(p, with_freelancer=False, with_job=True) for p in proposals]}

@router.get("/job/{job_id}")
async def job_proposals(job_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    proposals = await proposal_service.get_job_proposals(db, user, job_id)
    return {"success": True, "proposals": [proposal_out(p) for p in proposals]}

@router.post("/{job_id}", status_code=201)
async def create_proposal(
    job_id: int,
    data: Dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    proposal = await proposal_service.apply_to_job(db, user, job_id, data)
    return {"success": True, "message": "Proposal submitted successfully", "proposal": proposal_out(proposal)}

@router.get("/{proposal_id}")
async def get_proposal(proposal_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    proposal = await proposal_service.get_proposal(db, user, proposal_id)
    return {"success": True, "proposal": proposal_out(proposal, with_job=True)}

@router.patch("/{proposal_id}/status")
async def update_status(
    proposal_id: int,
    data: ProposalStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    proposal = await proposal_service.update_proposal_status(db, user, proposal_id, data.status, data.client_notes)
    return {"success": True, "message": "Proposal status updated", "proposal": proposal_out(proposal)}

@router.delete("/{proposal_id}")
async def delete_proposal(proposal_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await proposal_service.delete_proposal(db, user, proposal_id)
    return {"success": True, "message": "Proposal deleted successfully"}
