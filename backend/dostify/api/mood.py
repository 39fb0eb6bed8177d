"""REST API for mood logs and general app feedback."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlmodel import Session, select

from dostify.core.auth import get_current_user_id
from dostify.core.database import get_session
from dostify.models.mood import Feedback, MoodLog
from dostify.services.conversations import commit
from dostify.services.tools.mood_tools import serialize_mood

router = APIRouter()
feedback_router = APIRouter()


class MoodCreate(BaseModel):
    mood: int = Field(ge=1, le=10)
    note: Optional[str] = None


class FeedbackCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None


@router.post("/", status_code=201)
async def log_mood(
    body: MoodCreate,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    log = MoodLog(user_id=user_id, mood=body.mood, note=body.note)
    session.add(log)
    commit(session)
    session.refresh(log)
    return serialize_mood(log)


@router.get("/")
async def list_moods(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    logs = session.exec(
        select(MoodLog)
        .where(MoodLog.user_id == user_id)
        .order_by(MoodLog.created_at.desc(), MoodLog.id.desc())  # type: ignore
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    total = session.exec(
        select(func.count()).select_from(MoodLog).where(MoodLog.user_id == user_id)
    ).one()
    return {"logs": [serialize_mood(log) for log in logs], "page": page, "limit": limit, "total": total}


@feedback_router.post("/", status_code=201)
async def submit_app_feedback(
    body: FeedbackCreate,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    feedback = Feedback(user_id=user_id, rating=body.rating, comment=body.comment)
    session.add(feedback)
    commit(session)
    session.refresh(feedback)
    return {
        "id": feedback.id,
        "rating": feedback.rating,
        "comment": feedback.comment,
        "createdAt": feedback.created_at.isoformat(),
    }
