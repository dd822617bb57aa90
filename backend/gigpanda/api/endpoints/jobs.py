from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...db.database import get_db
from ...models.user import User
from ...schemas.common import pagination
from ...schemas.contract import contract_out
from ...schemas.job import JobSort, JobStatusUpdate, job_out
from ...schemas.proposal import proposal_out
from ...services import jobs as job_service
from ...services import proposals as proposal_service
from ..deps import get_current_user

router = APIRouter()

@router.get("")
async def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    experience_level: Optional[str] = Query(None, alias="experienceLevel"),
    location: Optional[str] = None,
    budget_type: Optional[str] = Query(None, alias="budgetType"),
    timeline: Optional[str] = None,
    budget_min: Optional[float] = Query(None, alias="budgetMin"),
    budget_max: Optional[float] = Query(None, alias="budgetMax"),
    sort_by: JobSort = Query(JobSort.NEWEST, alias="sortBy"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.list_jobs(
        db,
        caller_id=user.id,
        page=page,
        limit=limit,
        search=search,
        category=category,
        experience_level=experience_level,
        location=location,
        budget_type=budget_type,
        timeline=timeline,
        budget_min=budget_min,
        budget_max=budget_max,
        sort_by=sort_by.value,
    )
    page_info = pagination(result["page"], result["limit"], result["total"])
    page_info["totalJobs"] = page_info.pop("total")
    return {
        "success": True,
        "jobs": [job_out(job, result["counts"].get(job.id, 0)) for job in result["jobs"]],
        "pagination": page_info,
    }

@router.get("/hot")
async def hot_jobs(
    limit: int = Query(6, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    jobs = await job_service.hot_jobs(db, limit)
    counts = await job_service.proposal_counts(db, [job.id for job in jobs])
    return {"success": True, "jobs": [job_out(job, counts.get(job.id, 0)) for job in jobs]}

@router.get("/my/jobs")
async def my_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    include_contracts: bool = Query(False, alias="includeContracts"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.get_my_jobs(db, user, page, limit, status, include_contracts)
    jobs = []
    for job in result["jobs"]:
        proposals = result["proposals"].get(job.id, [])
        data = job_out(job, len(proposals), with_client=False)
        data["proposals"] = [proposal_out(p) for p in proposals]
        data["hasAcceptedProposal"] = any(p.status == "accepted" for p in proposals)
        if include_contracts:
            data["contracts"] = [contract_out(c) for c in result["contracts"] if c.job_id == job.id]
        jobs.append(data)
    return {
        "success": True,
        "jobs": jobs,
        "pagination": pagination(result["page"], result["limit"], result["total"]),
    }

@router.get("/my/applications")
async def my_applications(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    proposals = await proposal_service.get_my_proposals(db, user)
    return {
        "success": True,
        "applications": [proposal_out(p, with_freelancer=False, with_job=True) for p in proposals],
    }

@router.post("", status_code=201)
async def create_job(
    data: Dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    job = await job_service.create_job(db, user, data)
    return {"success": True, "message": "Job posted successfully", "job": job_out(job, 0)}

@router.post("/{job_id}/apply", status_code=201)
async def apply(
    job_id: int,
    data: Dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    proposal = await proposal_service.apply_to_job(db, user, job_id, data)
    return {"success": True, "message": "Proposal submitted successfully", "proposal": proposal_out(proposal)}

@router.get("/{job_id}")
async def get_job(job_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    job, count = await job_service.get_job(db, job_id)
    return {"success": True, "job": job_out(job, count)}

@router.patch("/{job_id}/status")
async def update_status(
    job_id: int,
    data: JobStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    job = await job_service.update_job_status(db, user, job_id, data.status)
    return {"success": True, "message": "Job status updated", "job": job_out(job)}

@router.delete("/{job_id}")
async def delete_job(job_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await job_service.delete_job(db, user, job_id)
    return {"success": True, "message": "Job deleted successfully"}
