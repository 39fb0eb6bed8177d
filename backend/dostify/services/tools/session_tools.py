"""Tools that act on the chat session the model is talking in."""

from dostify.core.errors import DostifyError, ToolExecutionError
from dostify.services import conversations
from dostify.services.tools.arguments import GetSessionSummaryArgs, GiveFeedbackArgs
from dostify.services.tools.base import BaseTool, ToolContext, ToolDefinition, ToolParameter, ToolResult


class GetSessionSummaryTool(BaseTool):
    args_model = GetSessionSummaryArgs

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="get_session_summary",
            description="Get a summary of the current chat session: title, message count and timestamps.",
        )

    async def execute(self, ctx: ToolContext, args: GetSessionSummaryArgs) -> ToolResult:
        chat = ctx.chat_session
        summary = conversations.session_summary(chat, len(ctx.prior_message_ids))
        title = chat.title or "Untitled session"
        return ToolResult.ok(
            f"{title}: {summary['messageCount']} earlier messages.",
            session=summary,
        )


class GiveFeedbackTool(BaseTool):
    args_model = GiveFeedbackArgs

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="give_feedback",
            description=(
                "Record the user's 1-5 rating for one of your earlier replies. "
                "messageIndex counts back from the most recent message, 0 being the latest."
            ),
            parameters=[
                ToolParameter(name="messageIndex", type="integer", description="0 = most recent message, 1 = the one before, ..."),
                ToolParameter(name="feedback", type="integer", description="Rating from 1 to 5"),
            ],
        )

    async def execute(self, ctx: ToolContext, args: GiveFeedbackArgs) -> ToolResult:
        try:
            message_id = conversations.message_from_end(ctx.prior_message_ids, args.message_index)
            conversations.set_message_feedback(ctx.db, ctx.chat_session, message_id, args.feedback)
        except DostifyError as e:
            raise ToolExecutionError(e.message) from e

        return ToolResult.ok(
            f"Feedback {args.feedback}/5 saved for message {args.message_index}",
            messageId=message_id,
        )
