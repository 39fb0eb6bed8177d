"""Base tool interface. All tools the chat model can call implement this."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from pydantic import BaseModel
from sqlmodel import Session

from dostify.models.conversation import ChatSession


@dataclass
class ToolParameter:
    name: str
    type: str  # "string" | "integer" | "boolean" | "number"
    description: str
    required: bool = True
    enum: list[str] | None = None
    format: str | None = None


@dataclass
class ToolDefinition:
    name: str
    description: str
    parameters: list[ToolParameter] = field(default_factory=list)

    def to_openai_schema(self) -> dict:
        """Convert to the nested chat completions ``tools`` entry."""
        properties = {}
        required = []
        for param in self.parameters:
            prop: dict[str, Any] = {"type": param.type, "description": param.description}
            if param.enum:
                prop["enum"] = param.enum
            if param.format:
                prop["format"] = param.format
            properties[param.name] = prop
            if param.required:
                required.append(param.name)

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }


@dataclass
class ToolContext:
    """What a tool may touch during one chat turn."""

    db: Session
    user_id: str
    chat_session: ChatSession
    # Message ids stored before this turn began, oldest first
    prior_message_ids: list[int] = field(default_factory=list)


@dataclass
class ToolResult:
    success: bool
    message: str | None = None
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls, message: str, **data: Any) -> "ToolResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.message is not None:
            out["message"] = self.message
        if self.error is not None:
            out["error"] = self.error
        if self.warnings:
            out["warnings"] = list(self.warnings)
        out.update(self.data)
        return out


class BaseTool(ABC):
    args_model: ClassVar[type[BaseModel]]

    @abstractmethod
    def definition(self) -> ToolDefinition:
        """Return the tool's definition for LLM function calling."""
        ...

    @abstractmethod
    async def execute(self, ctx: ToolContext, args: Any) -> ToolResult:
        """Run the tool with already-validated arguments (an instance of ``args_model``).

        May raise ToolExecutionError; the registry turns it into a failed result.
        """
        ...
