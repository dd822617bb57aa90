from .common import CamelModel
from .job import job_out

class BookmarkRequest(CamelModel):
    job_id: int

def bookmark_out(bookmark) -> dict:
    data = job_out(bookmark.job)
    data["bookmarkedAt"] = bookmark.created_at.isoformat() if bookmark.created_at else None
    data["bookmarkId"] = bookmark.id
    return data
