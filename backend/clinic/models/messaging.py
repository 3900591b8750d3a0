from __future__ import annotations

from datetime import datetime
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from clinic.db.base import Base

DELIVERED = "delivered"
READ = "read"


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("participant_a", "participant_b", name="uq_conversations_pair"),
        CheckConstraint("participant_a < participant_b", name="ck_conversations_canonical_pair"),
    )
    id: Mapped[int] = mapped_column(Integer(), primary_key=True, autoincrement=True)
    # canonical order: participant_a = min(pair), participant_b = max(pair)
    participant_a: Mapped[int] = mapped_column(Integer(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    participant_b: Mapped[int] = mapped_column(Integer(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    last_message_id: Mapped[int | None] = mapped_column(
        Integer(),
        ForeignKey("messages.id", ondelete="SET NULL", use_alter=True, name="fk_conversations_last_message"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.participant_a, self.participant_b)

    def other_participant(self, user_id: int) -> int | None:
        if user_id == self.participant_a:
            return self.participant_b
        if user_id == self.participant_b:
            return self.participant_a
        return None


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )
    id: Mapped[int] = mapped_column(Integer(), primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(Integer(), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)
    sender_id: Mapped[int] = mapped_column(Integer(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content: Mapped[str] = mapped_column(Text(), nullable=False)  # cleartext, unlike clinical fields
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class DeliveryStatus(Base):
    __tablename__ = "message_status"
    __table_args__ = (
        CheckConstraint("status IN ('delivered', 'read')", name="ck_message_status_status"),
        Index("ix_message_status_recipient", "recipient_id", "status"),
    )
    id: Mapped[int] = mapped_column(Integer(), primary_key=True, autoincrement=True)
    message_id: Mapped[int] = mapped_column(
        Integer(), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    recipient_id: Mapped[int] = mapped_column(Integer(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=DELIVERED)  # delivered|read
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
