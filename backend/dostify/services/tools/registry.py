"""Tool registry - maps tool names to handlers and runs them without ever raising."""

import logging

from dostify.core.errors import PersistenceError, ToolExecutionError
from dostify.services.tools.arguments import parse_arguments
from dostify.services.tools.base import BaseTool, ToolContext, ToolDefinition, ToolResult
from dostify.services.tools.mood_tools import GetMoodHistoryTool, LogMoodTool
from dostify.services.tools.session_tools import GetSessionSummaryTool, GiveFeedbackTool
from dostify.services.tools.task_tools import (
    CreateTaskTool,
    DeleteTaskTool,
    GetTasksTool,
    UpdateTaskTool,
)

logger = logging.getLogger(__name__)


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        defn = tool.definition()
        self._tools[defn.name] = tool

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        return [tool.definition() for tool in self._tools.values()]

    def openai_tools(self) -> list[dict]:
        return [defn.to_openai_schema() for defn in self.definitions()]

    async def execute(self, name: str, raw_arguments: str | None, ctx: ToolContext) -> ToolResult:
        """Parse arguments, dispatch, and turn every failure into a failed ToolResult."""
        tool = self.get(name)
        if tool is None:
            logger.warning(f"Model requested unknown tool '{name}'")
            return ToolResult.fail(f"Unknown tool: {name}")

        try:
            args = parse_arguments(tool.args_model, raw_arguments, name)
            result = await tool.execute(ctx, args)
        except ToolExecutionError as e:
            logger.info(f"Tool {name} failed: {e.message}")
            return ToolResult.fail(e.message)
        except PersistenceError as e:
            logger.error(f"Persistence error in tool {name}: {e.message}")
            return ToolResult.fail(f"{name} could not be saved, please try again later")
        except Exception as e:
            logger.exception(f"Unexpected error in tool {name}")
            return ToolResult.fail(f"Error executing {name}: {e}")

        logger.info(f"Tool {name} succeeded: {result.message}")
        return result


def create_default_registry() -> ToolRegistry:
    """Create a registry with all default tools."""
    registry = ToolRegistry()

    # Mood tools
    registry.register(LogMoodTool())
    registry.register(GetMoodHistoryTool())

    # Planner tools
    registry.register(CreateTaskTool())
    registry.register(GetTasksTool())
    registry.register(UpdateTaskTool())
    registry.register(DeleteTaskTool())

    # Session tools
    registry.register(GetSessionSummaryTool())
    registry.register(GiveFeedbackTool())

    return registry
