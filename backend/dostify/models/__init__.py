from dostify.models.conversation import ChatMessage, ChatSession
from dostify.models.mood import Feedback, MoodLog
from dostify.models.planner import Task

__all__ = ["ChatMessage", "ChatSession", "Feedback", "MoodLog", "Task"]
