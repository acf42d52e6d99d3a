from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from ..database import get_db
from .. import auth as auth_logic
from ..models import User

router = APIRouter(prefix="/auth", tags=["auth"])


class SendCodeSchema(BaseModel):
    email: str = ""


class VerifySchema(BaseModel):
    email: str = ""
    code: str = ""
    device_id: Optional[str] = Field(default=None, alias="deviceId")


@router.post("/send-code")
async def send_code(payload: SendCodeSchema, db: AsyncSession = Depends(get_db)):
    await auth_logic.request_code(payload.email, db)
    return {"success": True}


@router.post("/verify")
async def verify(payload: VerifySchema, response: Response, db: AsyncSession = Depends(get_db)):
    token = await auth_logic.verify_code(payload.email, payload.code, db)
    if payload.device_id:
        user = await auth_logic.resolve_session(token, db)
        await auth_logic.migrate_device_history(payload.device_id, user.id, db)
    auth_logic.set_session_cookie(response, token)
    return {"success": True}


@router.get("/me")
async def me(user: Optional[User] = Depends(auth_logic.get_optional_user)):
    if user is None:
        return {"user": None}
    return {"user": {"email": user.email}}


@router.post("/logout")
async def logout(response: Response):
    # the session row is left in place; only the browser forgets the token
    auth_logic.clear_session_cookie(response)
    return {"success": True}
