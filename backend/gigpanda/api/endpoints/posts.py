from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...db.database import get_db
from ...models.user import User
from ...schemas.common import pagination
from ...schemas.post import CommentRequest, CreatePostRequest, ReactionRequest, comment_out, post_out
from ...services import posts as post_service
from ..deps import get_current_user, get_optional_user

router = APIRouter()

@router.post("", status_code=201)
async def create_post(
    data: CreatePostRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.create_post(db, user, data)
    return {"success": True, "message": "Post created successfully", "post": post_out(post, user.id)}

@router.get("")
async def get_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    post_type: Optional[str] = Query(None, alias="type"),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    result = await post_service.get_posts(db, page, limit, post_type)
    viewer_id = viewer.id if viewer else None
    page_info = pagination(result["page"], result["limit"], result["total"])
    page_info["totalPosts"] = page_info.pop("total")
    return {
        "success": True,
        "posts": [post_out(p, viewer_id) for p in result["posts"]],
        "pagination": page_info,
    }

@router.get("/{post_id}")
async def get_post(
    post_id: int,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.get_post(db, post_id)
    return {"success": True, "post": post_out(post, viewer.id if viewer else None, comment_limit=None)}

@router.post("/{post_id}/like")
async def toggle_like(post_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    result = await post_service.toggle_like(db, user, post_id)
    return {"success": True, "message": "Post liked" if result["isLiked"] else "Post unliked", **result}

@router.post("/{post_id}/comment", status_code=201)
async def add_comment(
    post_id: int,
    data: CommentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.add_comment(db, user, post_id, data.content)
    return {
        "success": True,
        "message": "Comment added successfully",
        "comment": comment_out(post.comments[-1]),
        "commentCount": len(post.comments),
    }

@router.post("/{post_id}/reaction")
async def add_reaction(
    post_id: int,
    data: ReactionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.add_reaction(db, user, post_id, data.emoji)
    return {
        "success": True,
        "message": "Reaction added successfully",
        "reactions": post_out(post, user.id)["reactions"],
        "userReaction": data.emoji,
    }
