"""Argument shapes for every tool the chat model can call.

The model sends arguments as a JSON string. The registry parses that string
into one of these models before dispatch, so tools never see untyped dicts.
"""

import json
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from dostify.core.errors import ToolExecutionError


class ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LogMoodArgs(ToolArgs):
    mood: int = Field(ge=1, le=10)
    note: Optional[str] = None


class GetMoodHistoryArgs(ToolArgs):
    days: int = Field(default=30, gt=0)


class CreateTaskArgs(ToolArgs):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    due_date: Optional[str] = Field(default=None, alias="dueDate")

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class GetTasksArgs(ToolArgs):
    completed: Optional[bool] = None


class _TaskRef(ToolArgs):
    # Either a numeric task id or the task's exact title
    task_id: Union[int, str] = Field(alias="taskId")

    @field_validator("task_id")
    @classmethod
    def _normalize_ref(cls, v: Union[int, str]) -> str:
        v = str(v).strip()
        if not v:
            raise ValueError("taskId must not be blank")
        return v


class UpdateTaskArgs(_TaskRef):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    completed: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def _blank_title_is_no_change(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    def has_changes(self) -> bool:
        return any(
            v is not None for v in (self.title, self.description, self.due_date, self.completed)
        )


class DeleteTaskArgs(_TaskRef):
    pass


class GetSessionSummaryArgs(ToolArgs):
    pass


class GiveFeedbackArgs(ToolArgs):
    message_index: int = Field(alias="messageIndex", ge=0)
    feedback: int = Field(ge=1, le=5)


ToolArguments = Union[
    LogMoodArgs,
    GetMoodHistoryArgs,
    CreateTaskArgs,
    GetTasksArgs,
    UpdateTaskArgs,
    DeleteTaskArgs,
    GetSessionSummaryArgs,
    GiveFeedbackArgs,
]


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def parse_arguments(model: type[ToolArgs], raw: str | None, tool_name: str) -> ToolArguments:
    """Decode the model's raw argument string and validate it against ``model``."""
    if raw is None or not raw.strip():
        payload: object = {}
    else:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ToolExecutionError(f"Could not parse arguments for {tool_name}: {e.msg}") from e

    if not isinstance(payload, dict):
        raise ToolExecutionError(f"Arguments for {tool_name} must be a JSON object")

    try:
        return model.model_validate(payload)  # type: ignore[return-value]
    except PydanticValidationError as e:
        raise ToolExecutionError(f"Invalid arguments for {tool_name}: {_describe(e)}") from e
