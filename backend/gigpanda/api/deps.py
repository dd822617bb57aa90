from typing import Optional

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..core.errors import AuthenticationError
from ..db.database import get_db
from ..models.user import User
from ..utils.crypto import CryptoUtil

COOKIE_NAME = "token"

def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="strict" if settings.COOKIE_SECURE else "lax",
        max_age=settings.TOKEN_TTL_SECONDS,
        path="/",
    )

def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(COOKIE_NAME, path="/")

def _request_token(request: Request) -> Optional[str]:
    # an explicit bearer header wins over the browser cookie
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(COOKIE_NAME)

async def _resolve_user(request: Request, db: AsyncSession) -> Optional[User]:
    token = _request_token(request)
    if not token:
        return None
    user_id = CryptoUtil().read_token(token)
    if user_id is None:
        raise AuthenticationError("Token is invalid or expired, please login again")
    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return user

async def get_current_user(
    request: Request, response: Response, db: AsyncSession = Depends(get_db)
) -> User:
    user = await _resolve_user(request, db)
    if user is None:
        raise AuthenticationError("Not authorized, please login")
    # sliding expiry: every authenticated request renews the session
    set_auth_cookie(response, CryptoUtil().issue_token(user.id))
    return user

async def get_optional_user(request: Request, db: AsyncSession = Depends(get_db)) -> Optional[User]:
    try:
        return await _resolve_user(request, db)
    except AuthenticationError:
        return None
