"""REST API for chat session management."""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlmodel import Session, select

from dostify.core.auth import get_current_user_id
from dostify.core.database import get_session
from dostify.core.errors import ValidationError
from dostify.models.conversation import ChatMessage, ChatSession
from dostify.services import conversations

router = APIRouter()
logger = logging.getLogger(__name__)


class RenameBody(BaseModel):
    title: str = Field(min_length=1, max_length=200)


def _summaries(session: Session, chats: list[ChatSession]) -> list[dict]:
    counts = dict(
        session.exec(
            select(ChatMessage.chat_session_id, func.count())
            .where(ChatMessage.chat_session_id.in_([c.id for c in chats]))  # type: ignore
            .group_by(ChatMessage.chat_session_id)
        ).all()
    ) if chats else {}
    return [conversations.session_summary(c, counts.get(c.id, 0)) for c in chats]


@router.get("/")
async def list_sessions(
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    chats = session.exec(
        select(ChatSession)
        .where(ChatSession.user_id == user_id)
        .order_by(ChatSession.last_activity.desc())  # type: ignore
    ).all()
    return _summaries(session, list(chats))


@router.get("/search")
async def search_sessions(
    q: str = "",
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    if not q.strip():
        raise ValidationError("Missing search query", field="q")
    chats = session.exec(
        select(ChatSession)
        .where(ChatSession.user_id == user_id, ChatSession.title.ilike(f"%{q.strip()}%"))  # type: ignore
        .order_by(ChatSession.last_activity.desc())  # type: ignore
    ).all()
    return _summaries(session, list(chats))


@router.patch("/{session_id}/title")
async def rename_session(
    session_id: str,
    body: RenameBody,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    chat = conversations.get_session_for_user(session, user_id, session_id)
    chat.title = body.title.strip()
    session.add(chat)
    conversations.commit(session)
    return {"sessionId": chat.session_id, "title": chat.title}


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    chat = conversations.get_session_for_user(session, user_id, session_id)
    conversations.delete_session(session, chat)
    logger.debug(f"Deleted chat session {session_id} for user {user_id}")
    return {"message": "Session deleted", "sessionId": session_id}


@router.get("/{session_id}/export")
async def export_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    chat = conversations.get_session_for_user(session, user_id, session_id)
    messages = [conversations.serialize_message(m) for m in chat.messages]
    body = conversations.session_summary(chat, len(messages))
    body["messages"] = messages
    return JSONResponse(
        content=body,
        headers={"Content-Disposition": f'attachment; filename="chat_{chat.session_id}.json"'},
    )


@router.get("/{session_id}/messages")
async def list_session_messages(
    session_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    chat = conversations.get_session_for_user(session, user_id, session_id)
    messages = conversations.page_messages(session, chat, page, limit)
    return {
        "sessionId": chat.session_id,
        "messages": [conversations.serialize_message(m) for m in messages],
        "total": conversations.count_messages(session, chat),
        "page": page,
        "limit": limit,
    }
