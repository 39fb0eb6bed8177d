"""Chat orchestration: one user turn through the model, its tools, and back."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlmodel import Session

from dostify.core.config import Settings
from dostify.core.errors import UpstreamServiceError
from dostify.models.conversation import ASSISTANT, USER, ChatMessage, ChatSession
from dostify.services import conversations
from dostify.services.history import (
    assistant_from_response,
    map_history,
    map_inbound,
    tool_message_fields,
)
from dostify.services.llm.base import BaseLLMProvider, LLMResponse
from dostify.services.tools.base import ToolContext
from dostify.services.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class ChatTurnRequest:
    message: str
    session_id: str
    type: str = "text"
    image_url: str | None = None


@dataclass
class ChatTurnResult:
    session_id: str
    reply: str
    messages: list[ChatMessage] = field(default_factory=list)
    tool_results: list[dict[str, Any]] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ChatOrchestrator:
    """Runs a chat turn: load, map history, call the model, run tools, follow up, save.

    Tools are offered on the first call only. The follow-up call carries the
    tool results and no tool definitions, so a turn holds at most one tool round.
    """

    def __init__(self, settings: Settings, gateway: BaseLLMProvider, registry: ToolRegistry):
        self.settings = settings
        self.gateway = gateway
        self.registry = registry
        self.context_window = settings.chat_context_window

    def _system_message(self) -> dict[str, Any]:
        today = datetime.now(timezone.utc).strftime("%A, %Y-%m-%d")
        return {"role": "system", "content": f"{self.settings.system_prompt}\n\nToday is {today} (UTC)."}

    async def handle_turn(self, db: Session, user_id: str, request: ChatTurnRequest) -> ChatTurnResult:
        chat = conversations.get_or_create_session(db, user_id, request.session_id)
        if not chat.title:
            chat.title = request.message.strip()[:80]

        prior_ids = conversations.message_ids(db, chat)
        history = conversations.recent_messages(db, chat, self.context_window)
        model_messages = [self._system_message()] + map_history(
            history, map_inbound(request.message, request.type, request.image_url)
        )

        # The user's message must survive an upstream failure
        user_msg = conversations.append_message(
            db, chat,
            sender=USER,
            content=request.message,
            content_type=request.type,
            image_url=request.image_url,
        )
        conversations.save(db, chat)
        appended = [user_msg]

        logger.info(
            f"Chat turn user={user_id} session={request.session_id} "
            f"history={len(history)} tools={len(self.registry.names())}"
        )
        first = await self.gateway.complete(model_messages, tools=self.registry.openai_tools())

        if not first.wants_tools:
            reply = first.content or ""
            appended.append(conversations.append_message(db, chat, **assistant_from_response(first)))
            conversations.save(db, chat)
            return ChatTurnResult(session_id=chat.session_id, reply=reply, messages=appended)

        return await self._run_tool_round(db, user_id, chat, first, model_messages, prior_ids, appended)

    async def _run_tool_round(
        self,
        db: Session,
        user_id: str,
        chat: ChatSession,
        response: LLMResponse,
        model_messages: list[dict[str, Any]],
        prior_ids: list[int],
        appended: list[ChatMessage],
    ) -> ChatTurnResult:
        request_fields = assistant_from_response(response)
        appended.append(conversations.append_message(db, chat, **request_fields))
        # Committed before any tool runs so a failing tool can't roll it back
        conversations.save(db, chat)

        ctx = ToolContext(db=db, user_id=user_id, chat_session=chat, prior_message_ids=prior_ids)
        executed = []
        for call in response.tool_calls:
            logger.info(f"Tool call {call.id}: {call.name}({call.arguments})")
            result = await self.registry.execute(call.name, call.arguments, ctx)
            executed.append((call, result.to_dict()))

        round_start = len(appended) - 1
        for call, result in executed:
            fields = tool_message_fields(call.id, call.name, result)
            appended.append(conversations.append_message(db, chat, **fields))
        followup_messages = model_messages + map_history(appended[round_start:])
        conversations.save(db, chat)
        tool_results = [result for _, result in executed]

        try:
            followup = await self.gateway.complete(followup_messages)
        except UpstreamServiceError as e:
            done = [call.name for call, result in executed if result.get("success")]
            summary = ", ".join(done) if done else "none"
            raise UpstreamServiceError(
                f"The assistant could not finish its reply. Completed actions: {summary}",
                tool_results=tool_results,
                partial=True,
            ) from e

        if followup.wants_tools:
            # Tools weren't offered on the follow-up; extra requests are ignored
            logger.warning(f"Ignoring {len(followup.tool_calls)} tool calls in follow-up response")
        reply = followup.content or ""
        appended.append(conversations.append_message(db, chat, sender=ASSISTANT, content=reply))
        conversations.save(db, chat)

        return ChatTurnResult(
            session_id=chat.session_id,
            reply=reply,
            messages=appended,
            tool_results=tool_results,
        )
