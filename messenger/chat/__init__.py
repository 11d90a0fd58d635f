"""
Chat service package: 1-to-1 chats and their message history.
"""

from .routers import chat_router, message_router

__all__ = ["chat_router", "message_router"]
