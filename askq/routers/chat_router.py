import random
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional
from ..auth import get_optional_user, get_device_id
from ..chat import run_chat_turn
from ..database import get_db
from ..models import User, MAX_ID
from .. import quota

router = APIRouter(tags=["chat"])


class ChatPayload(BaseModel):
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    user_message: Optional[str] = Field(default=None, alias="userMessage")
    conversation_id: Optional[int] = Field(default=None, alias="conversationId", ge=1, le=MAX_ID)


def get_rng() -> random.Random:
    return random.Random()


def get_quota_key(request: Request, device_id: Optional[str] = Depends(get_device_id)) -> str:
    return quota.quota_key(request.headers, device_id)


@router.post("/chat")
async def chat(
    payload: ChatPayload,
    quota_key: str = Depends(get_quota_key),
    user: Optional[User] = Depends(get_optional_user),
    rng: random.Random = Depends(get_rng),
    db: AsyncSession = Depends(get_db),
):
    return await run_chat_turn(
        db,
        user=user,
        quota_key=quota_key,
        messages=payload.messages,
        user_message=payload.user_message,
        conversation_id=payload.conversation_id,
        rng=rng,
    )


@router.get("/count")
async def count(quota_key: str = Depends(get_quota_key), db: AsyncSession = Depends(get_db)):
    return {"count": await quota.get_count(quota_key, db)}
