from typing import List

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..core.logging import setup_logger
from ..models.bookmark import Bookmark
from ..models.user import User
from .jobs import load_job

logger = setup_logger("bookmarks")

async def add_bookmark(session: AsyncSession, user: User, job_id: int) -> Bookmark:
    if not job_id:
        raise ValidationError("Job ID is required", {"jobId": "Job ID is required"})
    job = await load_job(session, job_id)

    existing = await session.scalar(
        select(Bookmark.id).where(Bookmark.user_id == user.id, Bookmark.job_id == job.id)
    )
    if existing is not None:
        raise ConflictError("Job already bookmarked")

    bookmark = Bookmark(user_id=user.id, job_id=job.id)
    session.add(bookmark)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Job already bookmarked")
    logger.info(f"User {user.id} bookmarked job {job.id}")
    result = await session.execute(
        select(Bookmark).where(Bookmark.id == bookmark.id).execution_options(populate_existing=True)
    )
    return result.scalar_one()

async def remove_bookmark(session: AsyncSession, user: User, job_id: int) -> None:
    result = await session.execute(
        delete(Bookmark).where(Bookmark.user_id == user.id, Bookmark.job_id == job_id)
    )
    if result.rowcount == 0:
        raise NotFoundError("Bookmark not found")
    await session.commit()

async def get_bookmarks(session: AsyncSession, user: User) -> List[Bookmark]:
    result = await session.execute(
        select(Bookmark)
        .where(Bookmark.user_id == user.id)
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
    )
    return result.scalars().all()

async def is_bookmarked(session: AsyncSession, user: User, job_id: int) -> bool:
    found = await session.scalar(
        select(Bookmark.id).where(Bookmark.user_id == user.id, Bookmark.job_id == job_id)
    )
    return found is not None
