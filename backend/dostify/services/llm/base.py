"""Abstract language model gateway. All providers must implement this."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMToolCall:
    id: str
    name: str
    arguments: str  # raw JSON text, parsed only by the tool registry

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class LLMResponse:
    content: str | None
    tool_calls: list[LLMToolCall] = field(default_factory=list)
    finish_reason: str | None = None

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class BaseLLMProvider(ABC):
    @abstractmethod
    async def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None = None
    ) -> LLMResponse:
        """Send OpenAI-style chat messages and return the first choice.

        Tool definitions are attached only when ``tools`` is given. Raises
        UpstreamServiceError on any transport or protocol failure.
        """
        ...
