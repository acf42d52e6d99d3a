from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from ..auth import get_optional_user, get_current_user, get_device_id
from ..database import get_db
from ..errors import ValidationError, Unauthenticated
from ..models import User, MAX_ID
from .. import conversations as conv_logic

router = APIRouter(prefix="/conversations", tags=["conversations"])


class DeleteConversationSchema(BaseModel):
    id: int = Field(..., ge=1, le=MAX_ID)


def resolve_owner(user: Optional[User], device_id: Optional[str]) -> Optional[conv_logic.Owner]:
    # a signed-in user always wins over a device header
    if user is not None:
        return conv_logic.Owner.for_user(user.id)
    if device_id:
        return conv_logic.Owner.for_device(device_id)
    return None


def serialize(conv) -> dict:
    return {"id": conv.id, "title": conv.title, "created_at": conv.created_at.isoformat()}


@router.get("")
async def list_conversations(
    user: Optional[User] = Depends(get_optional_user),
    device_id: Optional[str] = Depends(get_device_id),
    db: AsyncSession = Depends(get_db),
):
    owner = resolve_owner(user, device_id)
    if owner is None:
        return {"conversations": []}
    convs = await conv_logic.list_conversations(db, owner)
    return {"conversations": [serialize(c) for c in convs]}


@router.post("")
async def create_conversation(
    user: Optional[User] = Depends(get_optional_user),
    device_id: Optional[str] = Depends(get_device_id),
    db: AsyncSession = Depends(get_db),
):
    owner = resolve_owner(user, device_id)
    if owner is None:
        raise ValidationError("No identity")
    conv = await conv_logic.create_conversation(db, owner)
    return {"id": conv.id}


@router.delete("")
async def delete_conversation(
    payload: DeleteConversationSchema,
    user: Optional[User] = Depends(get_optional_user),
    device_id: Optional[str] = Depends(get_device_id),
    db: AsyncSession = Depends(get_db),
):
    owner = resolve_owner(user, device_id)
    if owner is None:
        raise Unauthenticated()
    await conv_logic.get_owned_conversation(db, payload.id, owner)
    await conv_logic.delete_conversation(db, payload.id)
    return {"success": True}


@router.get("/{conversation_id}")
async def read_conversation(
    conversation_id: int = Path(..., ge=1, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await conv_logic.get_owned_conversation(db, conversation_id, conv_logic.Owner.for_user(user.id))
    return {"messages": await conv_logic.get_display_history(db, conversation_id)}
