from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...db.database import get_db
from ...models.user import User
from ...schemas.bookmark import BookmarkRequest, bookmark_out
from ...services import bookmarks as bookmark_service
from ..deps import get_current_user

router = APIRouter()

@router.post("")
async def add_bookmark(
    data: BookmarkRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bookmark = await bookmark_service.add_bookmark(db, user, data.job_id)
    return {"success": True, "message": "Job bookmarked successfully", "bookmark": bookmark_out(bookmark)}

@router.get("")
async def get_bookmarks(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    bookmarks = await bookmark_service.get_bookmarks(db, user)
    return {"success": True, "data": [bookmark_out(b) for b in bookmarks if b.job is not None]}

@router.get("/check/{job_id}")
async def check_bookmark(job_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return {"success": True, "isBookmarked": await bookmark_service.is_bookmarked(db, user, job_id)}

@router.delete("/{job_id}")
async def remove_bookmark(job_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await bookmark_service.remove_bookmark(db, user, job_id)
    return {"success": True, "message": "Bookmark removed successfully"}
