import asyncio
import json

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...core.logging import setup_logger
from ...db.database import get_db
from ...models.user import User
from ...schemas.common import dump, dump_many
from ...schemas.message import MessageOut, SendMessageRequest
from ...schemas.user import UserSummary
from ...services import messaging
from ...services.pubsub import get_broker
from ..deps import get_current_user

router = APIRouter()
logger = setup_logger("stream")

@router.post("", status_code=201)
async def send_message(
    data: SendMessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await messaging.send_message(db, user, data.receiver_id, data.content, data.job_id, data.proposal_id)
    return {"success": True, "message": "Message sent successfully", "data": dump(MessageOut, message)}

@router.get("/conversation/{other_id}")
async def conversation(
    other_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await messaging.get_conversation(db, user, other_id, page, limit)
    return {"success": True, "data": dump_many(MessageOut, result["messages"]), "pagination": result["pagination"]}

@router.get("/conversations")
async def conversations(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    rows = await messaging.get_conversations(db, user)
    return {
        "success": True,
        "data": [
            {
                "user": dump(UserSummary, row["user"]),
                "lastMessage": dump(MessageOut, row["last_message"]),
                "unreadCount": row["unread_count"],
            }
            for row in rows
        ],
    }

@router.get("/unread")
async def unread(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    count = await messaging.unread_message_count(db, user)
    return {"success": True, "data": {"count": count}}

def _sse(event: dict) -> str:
    return f"data: {json.dumps(event)}\n\n"

@router.get("/stream")
async def stream(request: Request, user: User = Depends(get_current_user)):
    """Server-sent events for the signed-in user: messages and notifications."""
    user_id = user.id
    broker = get_broker()
    subscription = broker.subscribe(user_id)

    async def events():
        try:
            yield _sse({"type": "connected", "userId": user_id})
            while not await request.is_disconnected():
                try:
                    event = await subscription.get(timeout=settings.SSE_PING_INTERVAL)
                except asyncio.TimeoutError:
                    yield ": ping\n\n"
                    continue
                yield _sse(event)
        finally:
            broker.unsubscribe(subscription)
            logger.info(f"Stream closed for user {user_id}")

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
