"""Chat turn endpoint plus per-session history and feedback."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from dostify.api.deps import get_orchestrator
from dostify.api.planner import TaskCreate, create_task_for_user
from dostify.core.auth import get_current_user_id
from dostify.core.database import get_session
from dostify.core.errors import ValidationError
from dostify.services import conversations
from dostify.services.orchestrator import ChatOrchestrator, ChatTurnRequest

router = APIRouter()
logger = logging.getLogger(__name__)


class ChatTurnBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1)
    session_id: str = Field(alias="sessionId", min_length=1)
    type: Literal["text", "image"] = "text"
    image_url: Optional[str] = Field(default=None, alias="imageUrl")


class MessageFeedbackBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_index: int = Field(alias="messageIndex", ge=0)
    feedback: int = Field(ge=1, le=5)


class RatingBody(BaseModel):
    feedback: int = Field(ge=1, le=5)


@router.post("")
async def chat_turn(
    body: ChatTurnBody,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    if not body.message.strip():
        raise ValidationError("Message must not be empty", field="message")
    if body.type == "image" and not body.image_url:
        raise ValidationError("imageUrl is required for image messages", field="imageUrl")

    result = await orchestrator.handle_turn(
        session,
        user_id,
        ChatTurnRequest(
            message=body.message,
            session_id=body.session_id,
            type=body.type,
            image_url=body.image_url,
        ),
    )

    response = {
        "messages": [conversations.serialize_message(m) for m in result.messages],
        "reply": result.reply,
        "sessionId": result.session_id,
        "timestamp": result.timestamp.isoformat(),
    }
    if result.tool_results:
        response["toolResults"] = result.tool_results
    return response


@router.get("/{session_id}")
async def get_history(
    session_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    chat = conversations.get_session_for_user(session, user_id, session_id)
    messages = conversations.page_messages(session, chat, page, limit)
    return {
        "messages": [conversations.serialize_message(m) for m in messages],
        "page": page,
        "limit": limit,
        "total": conversations.count_messages(session, chat),
    }


@router.post("/{session_id}/feedback")
async def submit_feedback(
    session_id: str,
    body: MessageFeedbackBody,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    """Rate a message counted back from the latest one (0 = most recent)."""
    chat = conversations.get_session_for_user(session, user_id, session_id)
    ids = conversations.message_ids(session, chat)
    message_id = conversations.message_from_end(ids, body.message_index)
    conversations.set_message_feedback(session, chat, message_id, body.feedback)
    return {"message": "Feedback saved", "messageId": message_id}


@router.post("/{session_id}/messages/{message_id}/feedback")
async def rate_message(
    session_id: str,
    message_id: int,
    body: RatingBody,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    chat = conversations.get_session_for_user(session, user_id, session_id)
    msg = conversations.set_message_feedback(session, chat, message_id, body.feedback)
    return {"message": "Feedback saved", "messageId": msg.id, "feedback": msg.feedback}


@router.post("/{session_id}/save-task", status_code=201)
async def save_suggested_task(
    session_id: str,
    body: TaskCreate,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    """Save a task the assistant suggested straight into the planner."""
    conversations.get_session_for_user(session, user_id, session_id)
    return create_task_for_user(session, user_id, body)
