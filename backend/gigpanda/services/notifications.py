from typing import Any, Dict, List, Optional

from sqlalchemy import event, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from ..core.logging import setup_logger
from ..models.notification import NOTIFICATION_TYPES, Notification
from ..schemas.notification import notification_out
from .pubsub import get_broker

logger = setup_logger("notifications")

PENDING_EVENTS = "pending_events"

@event.listens_for(Session, "after_soft_rollback")
def _discard_pending_events(session, previous_transaction):
    # events of a rolled back transaction must never reach subscribers
    session.info.pop(PENDING_EVENTS, None)

def queue_event(session: AsyncSession, user_id: int, payload: Dict[str, Any]) -> None:
    """Hold a real-time event until the session commits."""
    session.info.setdefault(PENDING_EVENTS, []).append((user_id, payload))

async def commit_and_publish(session: AsyncSession) -> None:
    await session.commit()
    events = session.info.pop(PENDING_EVENTS, [])
    broker = get_broker()
    for user_id, payload in events:
        await broker.publish(user_id, payload)

async def dispatch(
    session: AsyncSession,
    recipient_id: int,
    sender_id: int,
    type: str,
    job_id: Optional[int] = None,
    proposal_id: Optional[int] = None,
    post_id: Optional[int] = None,
    message_id: Optional[int] = None,
    message: Optional[str] = None,
) -> Notification:
    """Persist one notification in the caller's transaction.

    Not idempotent: two calls create two rows. The matching real-time event is
    published by :func:`commit_and_publish`.
    """
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")

    notification = Notification(
        recipient_id=recipient_id,
        sender_id=sender_id,
        type=type,
        job_id=job_id,
        proposal_id=proposal_id,
        post_id=post_id,
        message_id=message_id,
        message=message,
        read=False,
    )
    session.add(notification)
    await session.flush()
    logger.info(f"{type} -> user {recipient_id}")

    queue_event(session, recipient_id, {
        "type": "notification",
        "notification": notification_out(notification, with_sender=False),
    })
    return notification

async def unread_count(session: AsyncSession, user_id: int) -> int:
    return await session.scalar(
        select(func.count(Notification.id)).where(
            Notification.recipient_id == user_id, Notification.read.is_(False)
        )
    )

async def list_notifications(session: AsyncSession, user_id: int, page: int = 1, limit: int = 20) -> dict:
    page, limit = max(page, 1), max(limit, 1)
    skip = (page - 1) * limit

    result = await session.execute(
        select(Notification)
        .where(Notification.recipient_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(skip)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    notifications = result.scalars().all()
    total = await session.scalar(
        select(func.count(Notification.id)).where(Notification.recipient_id == user_id)
    )

    return {
        "notifications": [notification_out(n) for n in notifications],
        "unreadCount": await unread_count(session, user_id),
        "pagination": {
            "total": total,
            "page": page,
            "pages": (total + limit - 1) // limit,
            "hasMore": total > skip + len(notifications),
        },
    }

async def mark_read(session: AsyncSession, user_id: int, notification_ids: List[int]) -> int:
    if notification_ids:
        await session.execute(
            update(Notification)
            .where(Notification.id.in_(notification_ids), Notification.recipient_id == user_id)
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    return await unread_count(session, user_id)
