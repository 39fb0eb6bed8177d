"""Chat sessions and their messages."""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

# Sender kinds stored on ChatMessage.sender
USER = "user"
ASSISTANT = "assistant"
TOOL = "tool"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChatSession(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("user_id", "session_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    session_id: str = Field(index=True)  # caller supplied, unique per user
    title: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    last_activity: datetime = Field(default_factory=_now)

    messages: list["ChatMessage"] = Relationship(
        back_populates="chat_session",
        sa_relationship_kwargs={"order_by": "ChatMessage.id", "cascade": "all, delete-orphan"},
    )


class ChatMessage(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    chat_session_id: int = Field(foreign_key="chatsession.id", index=True)
    sender: str  # "user" | "assistant" | "tool"
    content: Optional[str] = None
    content_type: str = Field(default="text")  # "text" | "image"
    image_url: Optional[str] = None

    # Assistant turns that requested tools: [{"id", "type", "function": {"name", "arguments"}}]
    tool_calls: Optional[list[dict[str, Any]]] = Field(default=None, sa_column=Column(JSON))

    # Tool results
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    tool_result: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    feedback: Optional[int] = None  # 1-5, assistant messages only
    created_at: datetime = Field(default_factory=_now)

    chat_session: Optional[ChatSession] = Relationship(back_populates="messages")
