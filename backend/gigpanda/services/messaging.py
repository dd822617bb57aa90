from typing import List, Optional

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError, ValidationError
from ..core.logging import setup_logger
from ..models.message import Message
from ..models.user import User
from ..schemas.common import dump
from ..schemas.message import MessageOut
from .notifications import commit_and_publish, dispatch, queue_event

logger = setup_logger("messaging")

def _between(a: int, b: int):
    return or_(
        and_(Message.sender_id == a, Message.receiver_id == b),
        and_(Message.sender_id == b, Message.receiver_id == a),
    )

async def send_message(
    session: AsyncSession,
    user: User,
    receiver_id: Optional[int],
    content: Optional[str],
    job_id: Optional[int] = None,
    proposal_id: Optional[int] = None,
) -> Message:
    if not receiver_id or not content or not content.strip():
        raise ValidationError("Please provide all required fields")
    receiver = await session.get(User, receiver_id)
    if receiver is None:
        raise NotFoundError("Receiver not found")

    first_contact = await session.scalar(select(Message.id).where(_between(user.id, receiver.id)).limit(1)) is None

    message = Message(
        sender_id=user.id,
        receiver_id=receiver.id,
        content=content.strip(),
        job_id=job_id,
        proposal_id=proposal_id,
        is_read=False,
    )
    session.add(message)
    await session.flush()

    if first_contact:
        await dispatch(
            session,
            recipient_id=receiver.id,
            sender_id=user.id,
            type="NEW_MESSAGE",
            job_id=job_id,
            message_id=message.id,
            message=f"{user.name} sent you a message",
        )

    result = await session.execute(
        select(Message).where(Message.id == message.id).execution_options(populate_existing=True)
    )
    message = result.scalar_one()
    payload = {"type": "message", "message": dump(MessageOut, message)}
    for participant in {user.id, receiver.id}:
        queue_event(session, participant, payload)

    await commit_and_publish(session)
    logger.info(f"Message {message.id}: {user.id} -> {receiver.id}")
    return message

async def get_conversation(
    session: AsyncSession, user: User, other_id: int, page: int = 1, limit: int = 50
) -> dict:
    """Messages with one counterpart, oldest first. Marks theirs as read."""
    page, limit = max(page, 1), max(limit, 1)
    result = await session.execute(
        select(Message)
        .where(_between(user.id, other_id))
        .order_by(Message.created_at.asc(), Message.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    messages = result.scalars().all()
    total = await session.scalar(select(func.count(Message.id)).where(_between(user.id, other_id)))

    await session.execute(
        update(Message)
        .where(Message.sender_id == other_id, Message.receiver_id == user.id, Message.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    return {
        "messages": messages,
        "pagination": {"current": page, "pages": (total + limit - 1) // limit, "total": total},
    }

async def get_conversations(session: AsyncSession, user: User) -> List[dict]:
    """The latest message exchanged with every counterpart, newest first."""
    counterpart = case((Message.sender_id == user.id, Message.receiver_id), else_=Message.sender_id)
    unread = func.sum(case((and_(Message.receiver_id == user.id, Message.is_read.is_(False)), 1), else_=0))
    grouped = (
        select(counterpart.label("user_id"), func.max(Message.id).label("last_id"), unread.label("unread"))
        .where(or_(Message.sender_id == user.id, Message.receiver_id == user.id))
        .group_by(counterpart)
        .subquery()
    )
    rows = await session.execute(
        select(Message, User, grouped.c.unread)
        .join(grouped, Message.id == grouped.c.last_id)
        .join(User, User.id == grouped.c.user_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
    )
    return [
        {"user": other, "last_message": message, "unread_count": int(unread or 0)}
        for message, other, unread in rows.all()
    ]

async def unread_message_count(session: AsyncSession, user: User) -> int:
    return await session.scalar(
        select(func.count(Message.id)).where(Message.receiver_id == user.id, Message.is_read.is_(False))
    )
