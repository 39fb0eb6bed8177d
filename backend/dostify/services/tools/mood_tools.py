"""Mood logging tools."""

from datetime import datetime, timedelta, timezone

from sqlmodel import select

from dostify.models.mood import MoodLog
from dostify.services.conversations import commit
from dostify.services.tools.arguments import GetMoodHistoryArgs, LogMoodArgs
from dostify.services.tools.base import BaseTool, ToolContext, ToolDefinition, ToolParameter, ToolResult


def serialize_mood(log: MoodLog) -> dict:
    return {
        "id": log.id,
        "mood": log.mood,
        "note": log.note,
        "createdAt": log.created_at.isoformat(),
    }


class LogMoodTool(BaseTool):
    args_model = LogMoodArgs

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="log_mood",
            description="Log a mood entry for the current user on a 1-10 scale.",
            parameters=[
                ToolParameter(name="mood", type="integer", description="Mood value from 1 (very low) to 10 (great)"),
                ToolParameter(name="note", type="string", description="Optional note about the mood", required=False),
            ],
        )

    async def execute(self, ctx: ToolContext, args: LogMoodArgs) -> ToolResult:
        log = MoodLog(user_id=ctx.user_id, mood=args.mood, note=args.note)
        ctx.db.add(log)
        commit(ctx.db)
        ctx.db.refresh(log)

        suffix = f" ({args.note})" if args.note else ""
        return ToolResult.ok(f"Mood logged: {args.mood}{suffix}", mood=serialize_mood(log))


class GetMoodHistoryTool(BaseTool):
    args_model = GetMoodHistoryArgs

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="get_mood_history",
            description="Get the current user's mood log history, newest first.",
            parameters=[
                ToolParameter(
                    name="days", type="integer",
                    description="Number of days to look back (default 30)",
                    required=False,
                ),
            ],
        )

    async def execute(self, ctx: ToolContext, args: GetMoodHistoryArgs) -> ToolResult:
        since = datetime.now(timezone.utc) - timedelta(days=args.days)
        logs = ctx.db.exec(
            select(MoodLog)
            .where(MoodLog.user_id == ctx.user_id, MoodLog.created_at >= since)
            .order_by(MoodLog.created_at.desc())  # type: ignore
        ).all()

        if not logs:
            return ToolResult.ok(f"No mood entries in the last {args.days} days.", moods=[])

        average = sum(log.mood for log in logs) / len(logs)
        return ToolResult.ok(
            f"Found {len(logs)} mood entries in the last {args.days} days.",
            moods=[serialize_mood(log) for log in logs],
            averageMood=round(average, 1),
        )
