"""Map stored chat messages to OpenAI-style chat completion messages and back."""

import json
import logging
from typing import Any, Iterable

from dostify.models.conversation import ASSISTANT, TOOL, USER, ChatMessage
from dostify.services.llm.base import LLMResponse

logger = logging.getLogger(__name__)


def _user_content(text: str | None, content_type: str, image_url: str | None) -> Any:
    if content_type == "image" and image_url:
        return [
            {"type": "text", "text": text or ""},
            {"type": "image_url", "image_url": {"url": image_url}},
        ]
    return text or ""


def map_message(msg: ChatMessage) -> dict[str, Any] | None:
    """Convert one stored message. Returns None for sender kinds the model can't take."""
    if msg.sender == USER:
        return {"role": "user", "content": _user_content(msg.content, msg.content_type, msg.image_url)}

    if msg.sender == ASSISTANT:
        if msg.tool_calls:
            # Arguments stay as the raw JSON strings the model produced
            return {"role": "assistant", "content": None, "tool_calls": msg.tool_calls}
        return {"role": "assistant", "content": msg.content or ""}

    if msg.sender == TOOL:
        return {
            "role": "tool",
            "tool_call_id": msg.tool_call_id,
            "name": msg.tool_name,
            "content": json.dumps(msg.tool_result or {}, default=str),
        }

    logger.warning(f"Skipping message {msg.id} with unknown sender '{msg.sender}'")
    return None


def _drop_orphans(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Drop tool entries whose requesting assistant turn fell outside the window.

    The chat completion API rejects a tool message that doesn't follow the
    assistant message carrying its call id.
    """
    seen_call_ids: set[str] = set()
    kept = []
    for entry in entries:
        if entry["role"] == "assistant" and entry.get("tool_calls"):
            seen_call_ids.update(call.get("id") for call in entry["tool_calls"])
        elif entry["role"] == "tool" and entry.get("tool_call_id") not in seen_call_ids:
            logger.debug(f"Dropping tool result {entry.get('tool_call_id')} cut off by the context window")
            continue
        kept.append(entry)
    return kept


def map_inbound(text: str, content_type: str = "text", image_url: str | None = None) -> dict[str, Any]:
    return {"role": "user", "content": _user_content(text, content_type, image_url)}


def map_history(
    messages: Iterable[ChatMessage],
    inbound: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Stored messages (oldest first) plus the new inbound message, in model format."""
    entries = []
    for msg in messages:
        mapped = map_message(msg)
        if mapped is not None:
            entries.append(mapped)

    entries = _drop_orphans(entries)
    if inbound is not None:
        entries.append(inbound)
    return entries


def assistant_from_response(response: LLMResponse) -> dict[str, Any]:
    """Storable ChatMessage fields for the model's reply."""
    if response.tool_calls:
        return {
            "sender": ASSISTANT,
            "content": response.content or None,
            "tool_calls": [call.to_wire() for call in response.tool_calls],
        }
    return {"sender": ASSISTANT, "content": response.content or ""}


def tool_message_fields(call_id: str, tool_name: str, result: dict[str, Any]) -> dict[str, Any]:
    return {
        "sender": TOOL,
        "tool_call_id": call_id,
        "tool_name": tool_name,
        "tool_result": result,
    }
