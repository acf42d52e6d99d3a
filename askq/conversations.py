"""Conversation storage: ownership, append-only messages, titles and display expansion."""
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import ValidationError, NotFound
from .models import Conversation, ChatMessage, DEFAULT_TITLE

TITLE_MAX_CHARS = 50
MESSAGE_DELIMITER = "\n---\n"
ROLES = ("user", "assistant")


@dataclass(frozen=True)
class Owner:
    """Either an authenticated user or an anonymous device, never both."""

    user_id: Optional[int] = None
    device_id: Optional[str] = None

    def __post_init__(self):
        if (self.user_id is None) == (self.device_id is None):
            raise ValidationError("No identity")

    @classmethod
    def for_user(cls, user_id: int) -> "Owner":
        return cls(user_id=user_id)

    @classmethod
    def for_device(cls, device_id: str) -> "Owner":
        return cls(device_id=device_id)

    def clause(self):
        if self.user_id is not None:
            return Conversation.user_id == self.user_id
        return Conversation.device_id == self.device_id


def derive_title(content: str) -> str:
    if len(content) > TITLE_MAX_CHARS:
        return content[:TITLE_MAX_CHARS] + "..."
    return content


async def create_conversation(db: AsyncSession, owner: Owner, commit: bool = True) -> Conversation:
    conv = Conversation(user_id=owner.user_id, device_id=owner.device_id, title=DEFAULT_TITLE)
    db.add(conv)
    if commit:
        await db.commit()
        await db.refresh(conv)
    else:
        await db.flush()
    return conv


async def get_owned_conversation(db: AsyncSession, conversation_id: int, owner: Owner) -> Conversation:
    q = await db.execute(
        select(Conversation).where(Conversation.id == conversation_id, owner.clause())
    )
    conv = q.scalar_one_or_none()
    if conv is None:
        raise NotFound("Conversation not found")
    return conv


async def append_message(
    db: AsyncSession, conversation_id: int, role: str, content: str, commit: bool = True
) -> ChatMessage:
    """Append a message; the first user message also names the conversation."""
    if role not in ROLES:
        raise ValidationError(f"Invalid role: {role}")

    msg = ChatMessage(conversation_id=conversation_id, role=role, content=content)
    db.add(msg)
    await db.flush()

    if role == "user":
        q = await db.execute(
            select(func.count(ChatMessage.id)).where(
                ChatMessage.conversation_id == conversation_id, ChatMessage.role == "user"
            )
        )
        if q.scalar_one() == 1:
            conv = await db.get(Conversation, conversation_id)
            if conv is not None:
                conv.title = derive_title(content)

    if commit:
        await db.commit()
    return msg


async def get_history(db: AsyncSession, conversation_id: int) -> List[Dict[str, str]]:
    q = await db.execute(
        select(ChatMessage.role, ChatMessage.content)
        .where(ChatMessage.conversation_id == conversation_id)
        .order_by(ChatMessage.id.asc())
    )
    return [{"role": role, "content": content} for role, content in q.all()]


def split_reply(content: str) -> List[str]:
    """Split an assistant reply into display parts; the stored row is never split."""
    if MESSAGE_DELIMITER not in content:
        return [content]
    parts = [part.strip() for part in content.split(MESSAGE_DELIMITER)]
    parts = [part for part in parts if part]
    return parts or [content]


def expand_messages(messages: List[Dict[str, str]]) -> List[Dict[str, str]]:
    expanded: List[Dict[str, str]] = []
    for msg in messages:
        if msg["role"] == "assistant" and MESSAGE_DELIMITER in msg["content"]:
            for part in split_reply(msg["content"]):
                expanded.append({"role": "assistant", "content": part})
        else:
            expanded.append(msg)
    return expanded


async def get_display_history(db: AsyncSession, conversation_id: int) -> List[Dict[str, str]]:
    return expand_messages(await get_history(db, conversation_id))


async def list_conversations(db: AsyncSession, owner: Owner) -> List[Conversation]:
    q = await db.execute(
        select(Conversation)
        .where(owner.clause())
        .order_by(Conversation.created_at.desc(), Conversation.id.desc())
    )
    return list(q.scalars().all())


async def delete_conversation(db: AsyncSession, conversation_id: int) -> None:
    # both statements share one transaction so no orphaned messages survive a failure
    await db.execute(delete(ChatMessage).where(ChatMessage.conversation_id == conversation_id))
    await db.execute(delete(Conversation).where(Conversation.id == conversation_id))
    await db.commit()
