import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..shared.db.exceptions import RecordNotFound
from ..users.repository import UserRepository, get_user_repository
from ..users.schemas import MessageResponse as StatusMessage
from ..users.schemas import UserInDB
from ..users.security import get_current_user
from .repository import (
    ChatRepository,
    MessageRepository,
    get_chat_repository,
    get_message_repository,
)
from .schemas import ChatAccess, ChatResponse, MessageCreate, MessageResponse
from .service import ChatService, MessageService, NotParticipant

logger = logging.getLogger(__name__)

chat_router = APIRouter(prefix="/api/chats", tags=["chats"])
message_router = APIRouter(prefix="/api/messages", tags=["messages"])


def get_chat_service(
    chats: ChatRepository = Depends(get_chat_repository),
    messages: MessageRepository = Depends(get_message_repository),
    users: UserRepository = Depends(get_user_repository),
) -> ChatService:
    return ChatService(chats, messages, users)


def get_message_service(
    chats: ChatRepository = Depends(get_chat_repository),
    messages: MessageRepository = Depends(get_message_repository),
    users: UserRepository = Depends(get_user_repository),
) -> MessageService:
    return MessageService(chats, messages, users)


@chat_router.post("", response_model=ChatResponse)
async def access_chat(
    data: ChatAccess,
    current_user: UserInDB = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Access an existing 1-to-1 chat or create a new one"""
    if data.user_id == current_user.id:
        raise HTTPException(
            status_code=400, detail="Cannot open a chat with yourself"
        )
    try:
        return await chat_service.access(current_user.id, data.user_id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="User not found")


@chat_router.get("", response_model=List[ChatResponse])
async def fetch_chats(
    current_user: UserInDB = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Fetch all 1-to-1 chats for the logged-in user"""
    return await chat_service.list_for_user(current_user.id)


@chat_router.delete("/{chat_id}", response_model=StatusMessage)
async def delete_chat(
    chat_id: str,
    current_user: UserInDB = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Delete a chat together with all of its messages"""
    try:
        await chat_service.delete(chat_id, current_user.id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Chat not found")
    except NotParticipant:
        raise HTTPException(status_code=403, detail="Not authorized")
    return {"message": "Chat deleted successfully"}


@message_router.post(
    "", response_model=MessageResponse, status_code=status.HTTP_201_CREATED
)
async def send_message(
    message: MessageCreate,
    current_user: UserInDB = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service),
):
    """Send a new message in a chat"""
    try:
        return await message_service.send(
            message.chat_id, current_user, message.text
        )
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Chat not found")
    except NotParticipant:
        raise HTTPException(status_code=403, detail="Not authorized")


@message_router.get("/{chat_id}", response_model=List[MessageResponse])
async def get_messages(
    chat_id: str,
    current_user: UserInDB = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service),
):
    """Get all messages for a given chat"""
    try:
        return await message_service.history(chat_id, current_user.id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Chat not found")
    except NotParticipant:
        raise HTTPException(status_code=403, detail="Not authorized")
