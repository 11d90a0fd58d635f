from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ..users.schemas import CamelModel, SenderSchema, UserSchema


class ChatInDB(CamelModel):
    """Chat document as stored in the chats collection"""

    id: str = Field(..., alias="_id")
    participants: List[str] = Field(default_factory=list)
    last_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants


class MessageInDB(CamelModel):
    """Message document as stored in the messages collection"""

    id: str = Field(..., alias="_id")
    chat_id: str
    sender: str
    text: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ChatAccess(CamelModel):
    """Schema for opening a 1-to-1 chat with another user"""

    user_id: str = Field(..., min_length=1, description="The other participant")


class MessageCreate(CamelModel):
    """Schema for sending a message"""

    chat_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)


class MessageResponse(CamelModel):
    """Schema for message responses with the sender populated"""

    id: str = Field(..., alias="_id")
    chat_id: str
    sender: Optional[SenderSchema] = None
    text: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ChatResponse(CamelModel):
    """Schema for chat responses with participants and last message populated"""

    id: str = Field(..., alias="_id")
    participants: List[UserSchema] = Field(default_factory=list)
    last_message: Optional[MessageResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
