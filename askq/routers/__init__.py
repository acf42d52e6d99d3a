from .auth_router import router as auth_router
from .chat_router import router as chat_router
from .conversations_router import router as conversations_router

__all__ = ["auth_router", "chat_router", "conversations_router"]
