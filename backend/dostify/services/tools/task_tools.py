"""Planner task tools."""

import logging
import re
from datetime import date, datetime, timedelta, timezone

from sqlmodel import select

from dostify.core.errors import ToolExecutionError
from dostify.models.planner import Task
from dostify.services.conversations import commit
from dostify.services.tools.arguments import (
    CreateTaskArgs,
    DeleteTaskArgs,
    GetTasksArgs,
    UpdateTaskArgs,
)
from dostify.services.tools.base import BaseTool, ToolContext, ToolDefinition, ToolParameter, ToolResult

logger = logging.getLogger(__name__)

_DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%d.%m.%Y",
    "%B %d %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
]


def parse_due_date(value: str, today: date | None = None) -> datetime | None:
    """Best-effort parse of a free-form date. Returns None when nothing matches."""
    text = value.strip()
    if not text:
        return None
    today = today or datetime.now(timezone.utc).date()

    lowered = text.lower()
    relative = {"today": 0, "tonight": 0, "tomorrow": 1, "day after tomorrow": 2}
    if lowered in relative:
        d = today + timedelta(days=relative[lowered])
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)

    match = re.fullmatch(r"in (\d+) days?", lowered)
    if match:
        d = today + timedelta(days=int(match.group(1)))
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def serialize_task(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "dueDate": task.due_date.isoformat() if task.due_date else None,
        "completed": task.completed,
    }


def find_task(ctx: ToolContext, ref: str) -> Task | None:
    """Look up a task by id or exact title, only among the caller's tasks."""
    if ref.isdigit():
        task = ctx.db.exec(
            select(Task).where(Task.id == int(ref), Task.user_id == ctx.user_id)
        ).first()
        if task:
            return task
    return ctx.db.exec(
        select(Task)
        .where(Task.title == ref, Task.user_id == ctx.user_id)
        .order_by(Task.id)  # type: ignore
    ).first()


class CreateTaskTool(BaseTool):
    args_model = CreateTaskArgs

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="create_task",
            description="Create a planner task for the current user.",
            parameters=[
                ToolParameter(name="title", type="string", description="Task title"),
                ToolParameter(name="description", type="string", description="Task description", required=False),
                ToolParameter(
                    name="dueDate", type="string", format="date",
                    description="Due date, preferably YYYY-MM-DD",
                    required=False,
                ),
            ],
        )

    async def execute(self, ctx: ToolContext, args: CreateTaskArgs) -> ToolResult:
        warnings = []
        due = None
        if args.due_date:
            due = parse_due_date(args.due_date)
            if due is None:
                logger.warning(f"create_task: unparseable due date '{args.due_date}'")
                warnings.append(f"Could not understand due date '{args.due_date}'; task saved without one.")

        task = Task(user_id=ctx.user_id, title=args.title, description=args.description, due_date=due)
        ctx.db.add(task)
        commit(ctx.db)
        ctx.db.refresh(task)

        result = ToolResult.ok(f"Task created: {task.title}", task=serialize_task(task))
        result.warnings = warnings
        return result


class GetTasksTool(BaseTool):
    args_model = GetTasksArgs

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="get_tasks",
            description="List the current user's planner tasks, ordered by due date.",
            parameters=[
                ToolParameter(
                    name="completed", type="boolean",
                    description="Only tasks with this completed status (omit for all)",
                    required=False,
                ),
            ],
        )

    async def execute(self, ctx: ToolContext, args: GetTasksArgs) -> ToolResult:
        query = select(Task).where(Task.user_id == ctx.user_id)
        if args.completed is not None:
            query = query.where(Task.completed == args.completed)
        tasks = ctx.db.exec(
            query.order_by(Task.due_date.is_(None), Task.due_date, Task.id)  # type: ignore
        ).all()

        if not tasks:
            which = {True: "completed ", False: "open "}.get(args.completed, "")  # type: ignore[arg-type]
            return ToolResult.ok(f"You have no {which}tasks.", tasks=[])
        return ToolResult.ok(f"Found {len(tasks)} tasks.", tasks=[serialize_task(t) for t in tasks])


class UpdateTaskTool(BaseTool):
    args_model = UpdateTaskArgs

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="update_task",
            description="Update a planner task. Identify it by its id or its exact title.",
            parameters=[
                ToolParameter(name="taskId", type="string", description="Task id or exact task title"),
                ToolParameter(name="title", type="string", description="New title", required=False),
                ToolParameter(name="description", type="string", description="New description", required=False),
                ToolParameter(
                    name="dueDate", type="string", format="date",
                    description="New due date, preferably YYYY-MM-DD",
                    required=False,
                ),
                ToolParameter(name="completed", type="boolean", description="Mark as completed or not", required=False),
            ],
        )

    async def execute(self, ctx: ToolContext, args: UpdateTaskArgs) -> ToolResult:
        if not args.has_changes():
            raise ToolExecutionError("Task not found or not updated: no changes were given")

        task = find_task(ctx, args.task_id)
        if not task:
            raise ToolExecutionError(f"Task '{args.task_id}' not found")

        warnings = []
        if args.title is not None and args.title.strip():
            task.title = args.title.strip()
        if args.description is not None:
            task.description = args.description
        if args.completed is not None:
            task.completed = args.completed
        if args.due_date is not None:
            due = parse_due_date(args.due_date)
            if due is None:
                logger.warning(f"update_task: unparseable due date '{args.due_date}'")
                warnings.append(f"Could not understand due date '{args.due_date}'; due date left unchanged.")
            else:
                task.due_date = due

        task.updated_at = datetime.now(timezone.utc)
        ctx.db.add(task)
        commit(ctx.db)
        ctx.db.refresh(task)

        result = ToolResult.ok(f"Task updated: {task.title}", task=serialize_task(task))
        result.warnings = warnings
        return result


class DeleteTaskTool(BaseTool):
    args_model = DeleteTaskArgs

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="delete_task",
            description="Delete a planner task. Identify it by its id or its exact title.",
            parameters=[
                ToolParameter(name="taskId", type="string", description="Task id or exact task title"),
            ],
        )

    async def execute(self, ctx: ToolContext, args: DeleteTaskArgs) -> ToolResult:
        task = find_task(ctx, args.task_id)
        if not task:
            raise ToolExecutionError(f"Task '{args.task_id}' not found")

        title = task.title
        ctx.db.delete(task)
        commit(ctx.db)
        return ToolResult.ok(f"Task deleted: {title}")
