from typing import List, Optional

from pydantic import Field

from .common import CamelModel

class PostImage(CamelModel):
    data: str
    filename: str
    mimetype: str
    size: int
    alt: Optional[str] = ""
    caption: Optional[str] = ""

class CreatePostRequest(CamelModel):
    content: str
    post_type: Optional[str] = None
    images: List[dict] = []
    tags: List[str] = []
    is_available_for_work: bool = False

class CommentRequest(CamelModel):
    content: str

class ReactionRequest(CamelModel):
    emoji: str = Field(min_length=1, max_length=32)

def _author(user) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "avatar": user.picture_url or None,
        "role": user.role,
        "skills": user.skills or [],
    }

def comment_out(comment) -> dict:
    return {
        "id": comment.id,
        "content": comment.content,
        "author": {
            "id": comment.user.id,
            "name": comment.user.name,
            "avatar": comment.user.picture_url or None,
        },
        "createdAt": comment.created_at.isoformat() if comment.created_at else None,
    }

def post_out(post, viewer_id: Optional[int] = None, comment_limit: Optional[int] = 3) -> dict:
    comments = post.comments if comment_limit is None else post.comments[:comment_limit]
    user_reaction = None
    if viewer_id is not None:
        user_reaction = next((r.emoji for r in post.reactions if r.user_id == viewer_id), None)
    return {
        "id": post.id,
        "author": _author(post.author),
        "content": post.content,
        "postType": post.post_type,
        "images": post.images or [],
        "tags": post.tags or [],
        "likeCount": len(post.likes),
        "commentCount": len(post.comments),
        "views": post.views or 0,
        "isAvailableForWork": post.is_available_for_work,
        "createdAt": post.created_at.isoformat() if post.created_at else None,
        "updatedAt": post.updated_at.isoformat() if post.updated_at else None,
        "isLiked": viewer_id is not None and any(like.user_id == viewer_id for like in post.likes),
        "reactions": [{"emoji": r.emoji, "userId": r.user_id} for r in post.reactions],
        "userReaction": user_reaction,
        "comments": [comment_out(c) for c in comments],
    }
