from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case, cast, delete, func, or_, select, String
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..core.logging import setup_logger
from ..db.database import utcnow
from ..models.contract import Contract
from ..models.job import JOB_STATUSES, TIMELINES, Job
from ..models.proposal import Proposal
from ..models.user import User
from ..schemas.job import JobSort
from ..utils.validation import to_number, validate_job_input

logger = setup_logger("jobs")

TIMELINE_PRIORITY = case({t: i for i, t in enumerate(TIMELINES)}, value=Job.timeline, else_=len(TIMELINES))

async def load_job(session: AsyncSession, job_id: int) -> Job:
    result = await session.execute(
        select(Job).where(Job.id == job_id).execution_options(populate_existing=True)
    )
    job = result.scalar_one_or_none()
    if job is None:
        raise NotFoundError("Job not found")
    return job

async def proposal_counts(session: AsyncSession, job_ids: List[int]) -> Dict[int, int]:
    if not job_ids:
        return {}
    result = await session.execute(
        select(Proposal.job_id, func.count(Proposal.id))
        .where(Proposal.job_id.in_(job_ids))
        .group_by(Proposal.job_id)
    )
    return {job_id: count for job_id, count in result.all()}

async def create_job(session: AsyncSession, user: User, data: Dict[str, Any]) -> Job:
    errors = validate_job_input(data)
    if errors:
        raise ValidationError("Validation failed", errors)
    if user.role != "client":
        raise AuthorizationError("Only clients can post jobs")

    budget = data["budget"]
    job = Job(
        title=data["title"].strip(),
        description=data["description"].strip(),
        client_id=user.id,
        category=data["category"],
        skills=[s.strip() for s in data.get("skillsRequired", data.get("skills")) or []],
        budget_min=to_number(budget["min"]),
        budget_max=to_number(budget["max"]),
        currency=budget.get("currency") or "USD",
        budget_type=data["budgetType"],
        timeline=data["timeline"],
        experience_level=data["experienceLevel"],
        location=data.get("location") or "remote",
        country=(data.get("country") or "").strip() or None,
        status="open",
    )
    session.add(job)
    await session.commit()
    logger.info(f"Client {user.id} posted job {job.id}")
    return await load_job(session, job.id)

def _active(value: Optional[str]) -> bool:
    return bool(value) and value != "all"

async def list_jobs(
    session: AsyncSession,
    caller_id: int,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    category: Optional[str] = None,
    experience_level: Optional[str] = None,
    location: Optional[str] = None,
    budget_type: Optional[str] = None,
    timeline: Optional[str] = None,
    budget_min: Optional[float] = None,
    budget_max: Optional[float] = None,
    sort_by: str = JobSort.NEWEST.value,
) -> dict:
    """Open jobs, minus the ones the caller has already won."""
    page, limit = max(page, 1), max(limit, 1)
    filters = [Job.status == "open"]

    if search:
        pattern = f"%{search.lower()}%"
        filters.append(or_(
            func.lower(Job.title).like(pattern),
            func.lower(Job.description).like(pattern),
            # skills is a JSON list; matching its text form finds any element
            func.lower(cast(Job.skills, String)).like(pattern),
        ))
    if _active(category):
        filters.append(Job.category == category)
    if _active(experience_level):
        filters.append(Job.experience_level == experience_level)
    if _active(location):
        filters.append(Job.location == location)
    if _active(budget_type):
        filters.append(Job.budget_type == budget_type)
    if _active(timeline):
        filters.append(Job.timeline == timeline)
    # ranges overlap: the job is neither too cheap nor too expensive
    if budget_min is not None:
        filters.append(Job.budget_max >= budget_min)
    if budget_max is not None:
        filters.append(Job.budget_min <= budget_max)

    won = select(Proposal.job_id).where(
        Proposal.freelancer_id == caller_id, Proposal.status == "accepted"
    )
    filters.append(Job.id.not_in(won))

    order = {
        JobSort.NEWEST.value: [Job.created_at.desc(), Job.id.desc()],
        JobSort.OLDEST.value: [Job.created_at.asc(), Job.id.asc()],
        JobSort.BUDGET_HIGH.value: [Job.budget_max.desc(), Job.id.desc()],
        JobSort.BUDGET_LOW.value: [Job.budget_min.asc(), Job.id.asc()],
        JobSort.DEADLINE.value: [TIMELINE_PRIORITY.asc(), Job.created_at.desc(), Job.id.desc()],
    }.get(sort_by, [Job.created_at.desc(), Job.id.desc()])

    result = await session.execute(
        select(Job).where(*filters).order_by(*order).offset((page - 1) * limit).limit(limit)
    )
    jobs = result.scalars().all()
    counts = await proposal_counts(session, [job.id for job in jobs])
    total = await session.scalar(select(func.count(Job.id)).where(*filters))

    return {"jobs": jobs, "counts": counts, "total": total, "page": page, "limit": limit}

async def get_job(session: AsyncSession, job_id: int):
    job = await load_job(session, job_id)
    counts = await proposal_counts(session, [job.id])
    return job, counts.get(job.id, 0)

async def get_my_jobs(
    session: AsyncSession,
    user: User,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    include_contracts: bool = False,
) -> dict:
    if user.role != "client":
        raise AuthorizationError("Access denied - only clients can view their posted jobs")
    page, limit = max(page, 1), max(limit, 1)

    filters = [Job.client_id == user.id]
    if _active(status):
        filters.append(Job.status == status)

    result = await session.execute(
        select(Job).where(*filters)
        .order_by(Job.created_at.desc(), Job.id.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    jobs = result.scalars().all()
    job_ids = [job.id for job in jobs]

    proposals_by_job: Dict[int, list] = {job_id: [] for job_id in job_ids}
    if job_ids:
        proposals = await session.execute(
            select(Proposal).where(Proposal.job_id.in_(job_ids)).order_by(Proposal.created_at.desc())
        )
        for proposal in proposals.scalars().all():
            proposals_by_job[proposal.job_id].append(proposal)

    contracts = []
    if include_contracts and job_ids:
        found = await session.execute(
            select(Contract).where(Contract.job_id.in_(job_ids), Contract.client_id == user.id)
        )
        contracts = found.scalars().all()

    total = await session.scalar(select(func.count(Job.id)).where(*filters))
    return {
        "jobs": jobs,
        "proposals": proposals_by_job,
        "contracts": contracts,
        "total": total,
        "page": page,
        "limit": limit,
    }

async def _owned_job(session: AsyncSession, user: User, job_id: int, action: str) -> Job:
    job = await load_job(session, job_id)
    if job.client_id != user.id:
        raise AuthorizationError(f"You can only {action} your own jobs")
    return job

async def update_job_status(session: AsyncSession, user: User, job_id: int, status: str) -> Job:
    if status not in JOB_STATUSES:
        raise ValidationError("Invalid job status", {"status": "Invalid job status"})
    job = await _owned_job(session, user, job_id, "update")
    job.status = status
    await session.commit()
    logger.info(f"Job {job.id} -> {status}")
    return job

async def delete_job(session: AsyncSession, user: User, job_id: int) -> None:
    job = await _owned_job(session, user, job_id, "delete")
    try:
        await session.execute(delete(Proposal).where(Proposal.job_id == job.id))
        await session.delete(job)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("A job with contracts cannot be deleted")
    logger.info(f"Job {job_id} deleted with its proposals")

async def hot_jobs(session: AsyncSession, limit: int = 6) -> List[Job]:
    """Open jobs of the last week, topped up with older open jobs."""
    since = utcnow() - timedelta(days=7)
    recent = await session.execute(
        select(Job)
        .where(Job.status == "open", Job.created_at >= since)
        .order_by(Job.created_at.desc(), Job.id.desc())
        .limit(limit)
    )
    jobs = list(recent.scalars().all())
    if len(jobs) < limit:
        older = await session.execute(
            select(Job)
            .where(Job.status == "open", Job.id.not_in([job.id for job in jobs] or [0]))
            .order_by(Job.created_at.desc(), Job.id.desc())
            .limit(limit - len(jobs))
        )
        jobs.extend(older.scalars().all())
    return jobs
