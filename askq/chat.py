"""One chat turn: identity, quota, prompt context, completion, persistence."""
import logging
import random
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from . import conversations, llm, quota
from .errors import ValidationError, QuotaExceeded
from .models import User
from .prompts import select_system_prompt

logger = logging.getLogger("askq")


def clean_turns(messages: Optional[List[Dict[str, Any]]]) -> List[Dict[str, str]]:
    turns: List[Dict[str, str]] = []
    for m in messages or []:
        role = m.get("role")
        content = m.get("content")
        if role in conversations.ROLES and isinstance(content, str) and content.strip():
            turns.append({"role": role, "content": content})
    return turns


def last_user_text(turns: List[Dict[str, str]]) -> str:
    for m in reversed(turns):
        if m["role"] == "user":
            return m["content"]
    return ""


def reply_body(parts: List[str]) -> Dict[str, Any]:
    if len(parts) == 1:
        return {"message": parts[0]}
    return {"messages": parts}


async def run_chat_turn(
    db: AsyncSession,
    *,
    user: Optional[User],
    quota_key: str,
    messages: Optional[List[Dict[str, Any]]] = None,
    user_message: Optional[str] = None,
    conversation_id: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """Run a single request/response chat turn.

    Anonymous callers are checked against the free quota before the
    completion API is touched and their client-side transcript is used as
    context. Authenticated callers get server-side history instead, and the
    turn (new conversation, user message, assistant reply) is committed in
    one go once the completion has succeeded.
    """
    rng = rng or random.Random()
    turns = clean_turns(messages)

    if user is None:
        exhausted, count = await quota.is_exhausted(quota_key, db)
        if exhausted:
            logger.info("Quota exhausted for %s (count=%s)", quota_key, count)
            raise QuotaExceeded(count)
        if not last_user_text(turns):
            raise ValidationError("Missing user message")
        context = turns
        text = None
    else:
        text = (user_message or last_user_text(turns)).strip()
        if not text:
            raise ValidationError("Missing user message")
        history: List[Dict[str, str]] = []
        if conversation_id is not None:
            owner = conversations.Owner.for_user(user.id)
            await conversations.get_owned_conversation(db, conversation_id, owner)
            history = await conversations.get_history(db, conversation_id)
        context = history + [{"role": "user", "content": text}]

    system_prompt = select_system_prompt(context, rng)
    reply = await llm.complete(system_prompt, context)
    parts = conversations.split_reply(reply)

    if user is None:
        count = await quota.increment(quota_key, db)
        return {**reply_body(parts), "count": count, "conversationId": None}

    if conversation_id is None:
        conv = await conversations.create_conversation(
            db, conversations.Owner.for_user(user.id), commit=False
        )
        conversation_id = conv.id
    await conversations.append_message(db, conversation_id, "user", text, commit=False)
    await conversations.append_message(db, conversation_id, "assistant", reply, commit=False)
    await db.commit()

    count = await quota.get_count(quota_key, db)
    return {**reply_body(parts), "count": count, "conversationId": conversation_id}
