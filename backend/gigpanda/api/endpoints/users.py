from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...db.database import get_db
from ...models.user import User
from ...schemas.user import ProfileUpdate, user_out
from ...services import users as user_service
from ..deps import get_current_user

router = APIRouter()

@router.get("/profile")
async def get_profile(user: User = Depends(get_current_user)):
    return {"success": True, "user": user_out(user)}

@router.post("/profile")
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await user_service.update_profile(db, user.id, data)
    return {"success": True, "message": "Profile updated successfully", "user": user_out(updated)}

@router.get("/top-freelancers")
async def top_freelancers(limit: int = Query(10, ge=1, le=50), db: AsyncSession = Depends(get_db)):
    freelancers = await user_service.top_freelancers(db, limit)
    return {"success": True, "freelancers": [user_out(f) for f in freelancers]}
