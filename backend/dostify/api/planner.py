"""REST API for planner tasks - direct access without going through the assistant."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func
from sqlmodel import Session, select

from dostify.core.auth import get_current_user_id
from dostify.core.database import get_session
from dostify.core.errors import NotFoundError
from dostify.models.planner import Task
from dostify.services.conversations import commit
from dostify.services.tools.task_tools import serialize_task

router = APIRouter()


class TaskCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    description: Optional[str] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")


def create_task_for_user(session: Session, user_id: str, body: TaskCreate) -> dict:
    due = body.due_date
    if due is not None and due.tzinfo is None:
        due = due.replace(tzinfo=timezone.utc)
    task = Task(user_id=user_id, title=body.title, description=body.description, due_date=due)
    session.add(task)
    commit(session)
    session.refresh(task)
    return serialize_task(task)


def _get_task(session: Session, user_id: str, task_id: int) -> Task:
    task = session.exec(select(Task).where(Task.id == task_id, Task.user_id == user_id)).first()
    if not task:
        raise NotFoundError("Task not found")
    return task


@router.get("/")
async def list_tasks(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    tasks = session.exec(
        select(Task)
        .where(Task.user_id == user_id)
        .order_by(Task.due_date.is_(None), Task.due_date, Task.id)  # type: ignore
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    total = session.exec(
        select(func.count()).select_from(Task).where(Task.user_id == user_id)
    ).one()
    return {"tasks": [serialize_task(t) for t in tasks], "page": page, "limit": limit, "total": total}


@router.post("/", status_code=201)
async def create_task(
    body: TaskCreate,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return create_task_for_user(session, user_id, body)


@router.patch("/{task_id}/complete")
async def complete_task(
    task_id: int,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    task = _get_task(session, user_id, task_id)
    task.completed = True
    task.updated_at = datetime.now(timezone.utc)
    session.add(task)
    commit(session)
    session.refresh(task)
    return serialize_task(task)


@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    task = _get_task(session, user_id, task_id)
    session.delete(task)
    commit(session)
    return {"status": "deleted", "id": task_id}
