from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..core.logging import setup_logger
from ..models.job import Job
from ..models.proposal import PROPOSAL_STATUSES, Proposal
from ..models.user import User
from ..utils.validation import to_number, validate_proposal_input
from .jobs import load_job
from .notifications import commit_and_publish, dispatch

logger = setup_logger("proposals")

STATUS_NOTIFICATIONS = {
    "accepted": "PROPOSAL_ACCEPTED",
    "declined": "PROPOSAL_REJECTED",
}

async def load_proposal(session: AsyncSession, proposal_id: int) -> Proposal:
    result = await session.execute(
        select(Proposal).where(Proposal.id == proposal_id).execution_options(populate_existing=True)
    )
    proposal = result.scalar_one_or_none()
    if proposal is None:
        raise NotFoundError("Proposal not found")
    return proposal

async def apply_to_job(session: AsyncSession, user: User, job_id: int, data: Dict[str, Any]) -> Proposal:
    if user.role != "freelancer":
        raise AuthorizationError("Only freelancers can submit proposals")
    errors = validate_proposal_input(data)
    if errors:
        raise ValidationError("Validation failed", errors)

    job = await load_job(session, job_id)
    if job.status != "open":
        raise ConflictError("This job is no longer accepting proposals")

    existing = await session.scalar(
        select(Proposal.id).where(Proposal.job_id == job.id, Proposal.freelancer_id == user.id)
    )
    if existing is not None:
        raise ConflictError("You have already submitted a proposal for this job")

    bid = data["bidAmount"]
    proposal = Proposal(
        job=job,
        freelancer_id=user.id,
        cover_letter=data["coverLetter"].strip(),
        bid_amount=to_number(bid["amount"] if isinstance(bid, dict) else bid),
        bid_currency=(bid.get("currency") if isinstance(bid, dict) else None) or "USD",
        estimated_duration=data["estimatedDuration"],
        attachments=data.get("attachments") or [],
        status="pending",
    )
    session.add(proposal)
    try:
        await session.flush()
    except IntegrityError:
        # a concurrent request for the same pair won the unique constraint
        await session.rollback()
        raise ConflictError("You have already submitted a proposal for this job")

    await dispatch(
        session,
        recipient_id=job.client_id,
        sender_id=user.id,
        type="NEW_PROPOSAL",
        job_id=job.id,
        proposal_id=proposal.id,
        message=f"{user.name} submitted a proposal for \"{job.title}\"",
    )
    await commit_and_publish(session)
    logger.info(f"Freelancer {user.id} applied to job {job.id}")
    return await load_proposal(session, proposal.id)

async def update_proposal_status(
    session: AsyncSession,
    user: User,
    proposal_id: int,
    status: str,
    client_notes: Optional[str] = None,
) -> Proposal:
    if status not in PROPOSAL_STATUSES:
        raise ValidationError("Invalid proposal status", {"status": "Invalid proposal status"})

    proposal = await load_proposal(session, proposal_id)
    if proposal.job.client_id != user.id:
        raise AuthorizationError("You can only update proposals for your own jobs")

    proposal.status = status
    if client_notes is not None:
        proposal.client_notes = client_notes

    await dispatch(
        session,
        recipient_id=proposal.freelancer_id,
        sender_id=user.id,
        type=STATUS_NOTIFICATIONS.get(status, "PROPOSAL_STATUS_UPDATED"),
        job_id=proposal.job_id,
        proposal_id=proposal.id,
        message=f"Your proposal for \"{proposal.job.title}\" is now {status}",
    )
    await commit_and_publish(session)
    logger.info(f"Proposal {proposal.id} -> {status}")
    return await load_proposal(session, proposal.id)

async def get_job_proposals(session: AsyncSession, user: User, job_id: int) -> List[Proposal]:
    job = await load_job(session, job_id)
    if job.client_id != user.id:
        raise AuthorizationError("You can only view proposals for your own jobs")
    result = await session.execute(
        select(Proposal).where(Proposal.job_id == job.id).order_by(Proposal.created_at.desc(), Proposal.id.desc())
    )
    return result.scalars().all()

async def get_my_proposals(session: AsyncSession, user: User) -> List[Proposal]:
    if user.role != "freelancer":
        raise AuthorizationError("Only freelancers have proposals")
    result = await session.execute(
        select(Proposal)
        .where(Proposal.freelancer_id == user.id)
        .order_by(Proposal.created_at.desc(), Proposal.id.desc())
    )
    return result.scalars().all()

async def get_proposal(session: AsyncSession, user: User, proposal_id: int) -> Proposal:
    proposal = await load_proposal(session, proposal_id)
    if user.id not in (proposal.freelancer_id, proposal.job.client_id):
        raise AuthorizationError("You are not allowed to view this proposal")
    return proposal

async def delete_proposal(session: AsyncSession, user: User, proposal_id: int) -> None:
    proposal = await load_proposal(session, proposal_id)
    owner = await session.scalar(select(Job.client_id).where(Job.id == proposal.job_id))
    if owner != user.id:
        raise AuthorizationError("You can only delete proposals for your own jobs")
    try:
        await session.delete(proposal)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("A proposal with a contract cannot be deleted")
    logger.info(f"Proposal {proposal_id} deleted by client {user.id}")
