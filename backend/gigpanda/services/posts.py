from typing import Any, Dict, List, Optional

import pydantic
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError, ValidationError
from ..core.logging import setup_logger
from ..models.post import POST_TYPES, Post, PostComment, PostLike, PostReaction
from ..models.user import User
from ..schemas.post import CreatePostRequest, PostImage
from .notifications import commit_and_publish, dispatch

logger = setup_logger("posts")

IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")
MAX_IMAGES = 5
MAX_IMAGE_SIZE = 5 * 1024 * 1024
MAX_TAGS = 10

def clean_tags(tags: List[str]) -> List[str]:
    """Lowercased, deduplicated in order, at most ten."""
    seen = []
    for tag in tags or []:
        tag = str(tag).strip().lower()
        if 0 < len(tag) <= 50 and tag not in seen:
            seen.append(tag)
    return seen[:MAX_TAGS]

def clean_images(images: List[Dict[str, Any]]) -> List[dict]:
    """Keeps well-formed data-URI images and drops the rest."""
    kept = []
    for raw in images or []:
        try:
            image = PostImage.model_validate(raw)
        except pydantic.ValidationError:
            continue
        mimetype = image.mimetype.lower()
        if mimetype not in IMAGE_TYPES or image.size <= 0 or image.size > MAX_IMAGE_SIZE:
            continue
        if not image.data.startswith("data:image/"):
            continue
        kept.append({
            "data": image.data,
            "filename": image.filename.strip(),
            "mimetype": mimetype,
            "size": image.size,
            "alt": (image.alt or "").strip(),
            "caption": (image.caption or "").strip(),
        })
    return kept[:MAX_IMAGES]

async def load_post(session: AsyncSession, post_id: int) -> Post:
    result = await session.execute(
        select(Post).where(Post.id == post_id).execution_options(populate_existing=True)
    )
    post = result.scalar_one_or_none()
    if post is None:
        raise NotFoundError("Post not found")
    return post

async def create_post(session: AsyncSession, user: User, data: CreatePostRequest) -> Post:
    content = (data.content or "").strip()
    if not content:
        raise ValidationError("Content is required", {"content": "Content is required"})
    if len(content) > 2000:
        raise ValidationError("Content must be less than 2000 characters", {"content": "Too long"})
    if data.post_type and data.post_type not in POST_TYPES:
        raise ValidationError("Invalid post type", {"postType": "Invalid post type"})

    post = Post(
        author_id=user.id,
        content=content,
        post_type=data.post_type or "general",
        images=clean_images(data.images),
        tags=clean_tags(data.tags),
        views=0,
        is_available_for_work=bool(data.is_available_for_work),
    )
    session.add(post)
    await session.commit()
    logger.info(f"User {user.id} published post {post.id}")
    return await load_post(session, post.id)

async def get_posts(session: AsyncSession, page: int = 1, limit: int = 10, post_type: Optional[str] = None) -> dict:
    page, limit = max(page, 1), max(limit, 1)
    filters = []
    if post_type and post_type != "all":
        filters.append(Post.post_type == post_type)

    result = await session.execute(
        select(Post).where(*filters)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    total = await session.scalar(select(func.count(Post.id)).where(*filters))
    return {"posts": result.scalars().all(), "total": total, "page": page, "limit": limit}

async def get_post(session: AsyncSession, post_id: int) -> Post:
    await load_post(session, post_id)
    await session.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(views=Post.views + 1)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return await load_post(session, post_id)

async def toggle_like(session: AsyncSession, user: User, post_id: int) -> dict:
    post = await load_post(session, post_id)
    existing = next((like for like in post.likes if like.user_id == user.id), None)
    liked = existing is None
    if liked:
        post.likes.append(PostLike(user_id=user.id))
        if post.author_id != user.id:
            await dispatch(
                session,
                recipient_id=post.author_id,
                sender_id=user.id,
                type="POST_LIKED",
                post_id=post.id,
                message="liked your post",
            )
    else:
        post.likes.remove(existing)
    await commit_and_publish(session)
    return {"likeCount": len(post.likes), "isLiked": liked}

async def add_comment(session: AsyncSession, user: User, post_id: int, content: str) -> Post:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Comment content is required", {"content": "Comment content is required"})
    post = await load_post(session, post_id)
    post.comments.append(PostComment(user_id=user.id, content=content))
    if post.author_id != user.id:
        await dispatch(
            session,
            recipient_id=post.author_id,
            sender_id=user.id,
            type="POST_COMMENTED",
            post_id=post.id,
            message="commented on your post",
        )
    await commit_and_publish(session)
    return await load_post(session, post.id)

async def add_reaction(session: AsyncSession, user: User, post_id: int, emoji: str) -> Post:
    """One reaction per user and post; a new emoji replaces the old one."""
    emoji = (emoji or "").strip()
    if not emoji:
        raise ValidationError("Emoji is required", {"emoji": "Emoji is required"})
    post = await load_post(session, post_id)
    existing = next((r for r in post.reactions if r.user_id == user.id), None)
    if existing is not None:
        existing.emoji = emoji
    else:
        post.reactions.append(PostReaction(user_id=user.id, emoji=emoji))
    if post.author_id != user.id:
        await dispatch(
            session,
            recipient_id=post.author_id,
            sender_id=user.id,
            type="POST_REACTION",
            post_id=post.id,
            message=emoji,
        )
    await commit_and_publish(session)
    return await load_post(session, post.id)
