from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ...db.database import get_db
from ...models.user import User
from ...schemas.user import LoginRequest, SignupRequest, user_out
from ...services import users as user_service
from ...utils.crypto import CryptoUtil
from ..deps import clear_auth_cookie, get_current_user, set_auth_cookie

router = APIRouter()
crypto = CryptoUtil()

@router.post("/signup", status_code=201)
async def signup(data: SignupRequest, response: Response, db: AsyncSession = Depends(get_db)):
    user = await user_service.signup(db, data)
    set_auth_cookie(response, crypto.issue_token(user.id))
    return {"success": True, "message": "User created successfully", "user": user_out(user)}

@router.post("/login")
async def login(data: LoginRequest, response: Response, db: AsyncSession = Depends(get_db)):
    user = await user_service.login(db, data.email, data.password)
    set_auth_cookie(response, crypto.issue_token(user.id))
    return {"success": True, "message": "Logged in successfully", "user": user_out(user)}

@router.post("/logout")
async def logout(response: Response):
    clear_auth_cookie(response)
    return {"success": True, "message": "Logged out successfully"}

@router.get("/check-auth")
async def check_auth(user: User = Depends(get_current_user)):
    return {"success": True, "user": user_out(user)}
