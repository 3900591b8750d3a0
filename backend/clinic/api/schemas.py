from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal
from datetime import datetime

Role = Literal["DOCTOR", "NURSE", "ADMIN"]

class RegisterIn(BaseModel):
    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    role: Role

class LoginIn(BaseModel):
    email: str
    password: str

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: Role

class UserOut(BaseModel):
    id: int
    role: Role
    first_name: str
    last_name: str
    email: str

class ConversationStartIn(BaseModel):
    other_user_id: int

class MessageSendIn(BaseModel):
    content: str = Field(min_length=1, max_length=4000)

    @field_validator("content")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content must not be blank")
        return v

class ConversationOut(BaseModel):
    conversation_id: int
    participant_a: int
    participant_b: int
    last_message_id: Optional[int] = None
    created_at: datetime
    last_message_sender_id: Optional[int] = None
    last_message_content: Optional[str] = None
    last_message_created_at: Optional[datetime] = None
    unread_count: int = 0

class MessageOut(BaseModel):
    message_id: int
    conversation_id: int
    sender_id: int
    content: str
    created_at: datetime

class MessageWithStatusOut(MessageOut):
    recipient_id: Optional[int] = None
    status: Literal["delivered", "read"]

class ReadReceiptOut(BaseModel):
    message_id: int
    status: Literal["read"] = "read"
    changed: bool

class PollingOut(BaseModel):
    session_id: str
    running: bool

class NotificationsOut(BaseModel):
    batches: list[list[dict]]
