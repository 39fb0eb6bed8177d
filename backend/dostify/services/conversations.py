"""Conversation store: load, append and save chat sessions."""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from dostify.core.errors import NotFoundError, PersistenceError, ValidationError
from dostify.models.conversation import ASSISTANT, ChatMessage, ChatSession

logger = logging.getLogger(__name__)


def commit(db: Session) -> None:
    """Commit the unit of work, wrapping driver errors as PersistenceError."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Database write failed: {e}") from e


def get_session_for_user(db: Session, user_id: str, session_id: str) -> ChatSession:
    chat = db.exec(
        select(ChatSession).where(
            ChatSession.user_id == user_id, ChatSession.session_id == session_id
        )
    ).first()
    if not chat:
        raise NotFoundError("Chat session not found")
    return chat


def get_or_create_session(db: Session, user_id: str, session_id: str) -> ChatSession:
    chat = db.exec(
        select(ChatSession).where(
            ChatSession.user_id == user_id, ChatSession.session_id == session_id
        )
    ).first()
    if chat:
        return chat

    chat = ChatSession(user_id=user_id, session_id=session_id)
    db.add(chat)
    commit(db)
    db.refresh(chat)
    logger.debug(f"Created chat session {session_id} for user {user_id}")
    return chat


def count_messages(db: Session, chat: ChatSession) -> int:
    return db.exec(
        select(func.count()).select_from(ChatMessage).where(ChatMessage.chat_session_id == chat.id)
    ).one()


def recent_messages(db: Session, chat: ChatSession, limit: int) -> list[ChatMessage]:
    """Last ``limit`` messages of a session, oldest first."""
    if limit <= 0:
        return []
    rows = db.exec(
        select(ChatMessage)
        .where(ChatMessage.chat_session_id == chat.id)
        .order_by(ChatMessage.id.desc())  # type: ignore
        .limit(limit)
    ).all()
    return list(reversed(rows))


def page_messages(db: Session, chat: ChatSession, page: int, limit: int) -> list[ChatMessage]:
    return list(
        db.exec(
            select(ChatMessage)
            .where(ChatMessage.chat_session_id == chat.id)
            .order_by(ChatMessage.id)  # type: ignore
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
    )


def message_ids(db: Session, chat: ChatSession) -> list[int]:
    return list(
        db.exec(
            select(ChatMessage.id)
            .where(ChatMessage.chat_session_id == chat.id)
            .order_by(ChatMessage.id)  # type: ignore
        ).all()
    )


def append_message(db: Session, chat: ChatSession, **fields: Any) -> ChatMessage:
    """Stage a message on the session. Flushed so it gets its id; committed by save()."""
    msg = ChatMessage(chat_session_id=chat.id, **fields)  # type: ignore[arg-type]
    db.add(msg)
    try:
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Database write failed: {e}") from e
    return msg


def save(db: Session, chat: ChatSession) -> None:
    """Persist every staged message and bump last activity in one commit."""
    chat.last_activity = datetime.now(timezone.utc)
    db.add(chat)
    commit(db)


def message_from_end(ids: list[int], index: int) -> int:
    """Resolve an end-relative index (0 = most recent) to a message id."""
    if index < 0 or index >= len(ids):
        raise ValidationError(
            f"Invalid message index {index}; the session has {len(ids)} messages",
            field="messageIndex",
        )
    return ids[len(ids) - 1 - index]


def set_message_feedback(db: Session, chat: ChatSession, message_id: int, rating: int) -> ChatMessage:
    """Addressed update of one message's rating, located by its id within the session."""
    if rating < 1 or rating > 5:
        raise ValidationError("Feedback must be an integer from 1 to 5", field="feedback")

    msg = db.exec(
        select(ChatMessage).where(
            ChatMessage.id == message_id, ChatMessage.chat_session_id == chat.id
        )
    ).first()
    if not msg:
        raise NotFoundError("Message not found")
    if msg.sender != ASSISTANT:
        raise ValidationError("Only assistant messages can be rated", field="messageIndex")

    msg.feedback = rating
    db.add(msg)
    commit(db)
    db.refresh(msg)
    return msg


def delete_session(db: Session, chat: ChatSession) -> None:
    db.delete(chat)
    commit(db)


def serialize_message(msg: ChatMessage) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": msg.id,
        "sender": msg.sender,
        "content": msg.content,
        "type": msg.content_type,
        "createdAt": msg.created_at.isoformat(),
    }
    if msg.image_url:
        data["imageUrl"] = msg.image_url
    if msg.tool_calls:
        data["toolCalls"] = msg.tool_calls
    if msg.tool_call_id:
        data["toolCallId"] = msg.tool_call_id
        data["toolName"] = msg.tool_name
        data["toolResult"] = msg.tool_result
    if msg.feedback is not None:
        data["feedback"] = msg.feedback
    return data


def session_summary(chat: ChatSession, message_count: int) -> dict[str, Any]:
    return {
        "sessionId": chat.session_id,
        "title": chat.title,
        "createdAt": chat.created_at.isoformat(),
        "lastActivity": chat.last_activity.isoformat(),
        "messageCount": message_count,
    }
