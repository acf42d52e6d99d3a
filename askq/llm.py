import logging
import os
from typing import Dict, List

import requests
from fastapi.concurrency import run_in_threadpool

from .errors import UpstreamError

logger = logging.getLogger("askq")

# =============================
# GROQ (OpenAI-compatible chat completions)
# =============================
GROQ_API_KEY = os.getenv("GROQ_API_KEY", "").strip()
GROQ_URL = os.getenv("GROQ_URL", "https://api.groq.com/openai/v1/chat/completions")

MODEL_DEFAULT = os.getenv("LLM_MODEL", "llama-3.1-8b-instant")
MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "500"))
TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))


def build_messages(system_prompt: str, history: List[Dict[str, str]]) -> List[Dict[str, str]]:
    msgs: List[Dict[str, str]] = [{"role": "system", "content": system_prompt}]
    for h in history:
        role = h.get("role")
        content = h.get("content")
        if role in ("user", "assistant") and isinstance(content, str) and content.strip():
            msgs.append({"role": role, "content": content})
    return msgs


def complete_sync(system_prompt: str, history: List[Dict[str, str]], model: str = MODEL_DEFAULT) -> str:
    """One blocking completion call; any failure becomes UpstreamError."""
    if not GROQ_API_KEY:
        logger.error("GROQ_API_KEY is not configured")
        raise UpstreamError()

    headers = {
        "Authorization": f"Bearer {GROQ_API_KEY}",
        "Content-Type": "application/json",
    }
    payload = {
        "model": model,
        "messages": build_messages(system_prompt, history),
        "max_tokens": MAX_TOKENS,
    }

    try:
        r = requests.post(GROQ_URL, headers=headers, json=payload, timeout=TIMEOUT_SECONDS)
    except requests.exceptions.RequestException as e:
        logger.exception("Completion request failed: %s", e)
        raise UpstreamError() from e

    if r.status_code >= 400:
        logger.error("Completion API HTTP %s: %s", r.status_code, r.text[:500])
        raise UpstreamError()

    try:
        text = r.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        logger.exception("Unexpected completion payload: %s", e)
        raise UpstreamError() from e
    return text or ""


async def complete(system_prompt: str, history: List[Dict[str, str]], model: str = MODEL_DEFAULT) -> str:
    return await run_in_threadpool(complete_sync, system_prompt, history, model)


def api_key_present() -> bool:
    return bool(GROQ_API_KEY)
