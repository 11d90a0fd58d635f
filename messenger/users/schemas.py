from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema that reads and writes camelCase keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserInDB(CamelModel):
    """User document as stored in the users collection"""

    id: str = Field(..., alias="_id")
    username: str
    email: EmailStr
    password: str
    unique_id: Optional[str] = None
    avatar: str = ""
    reset_password_token: Optional[str] = None
    reset_password_expires: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserSchema(CamelModel):
    """Schema for user responses, never carries the password"""

    id: str = Field(..., alias="_id")
    username: str
    email: EmailStr
    unique_id: Optional[str] = None
    avatar: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SenderSchema(CamelModel):
    """Short user summary embedded in messages"""

    id: str = Field(..., alias="_id")
    username: str
    unique_id: Optional[str] = None
    avatar: str = ""


class AuthResponse(CamelModel):
    """Schema returned by register and login"""

    id: str = Field(..., alias="_id")
    username: str
    email: EmailStr
    unique_id: Optional[str] = None
    avatar: str = ""
    token: str


class UserCreate(CamelModel):
    """Schema for creating a new user"""

    username: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    unique_id: Optional[str] = None

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class UserLogin(CamelModel):
    """Schema for logging in"""

    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class UserUpdate(CamelModel):
    """Schema for modifying the current user's profile"""

    username: Optional[str] = None
    avatar: Optional[str] = None


class PasswordResetRequest(BaseModel):
    """Schema for password reset requests"""

    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """Schema for confirming password resets"""

    password: str


class MessageResponse(BaseModel):
    """Plain status message returned by the auth endpoints"""

    message: str
