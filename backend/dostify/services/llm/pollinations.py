"""Pollinations text API gateway (OpenAI-compatible chat completions)."""

import json
import logging
import uuid
from typing import Any

import httpx

from dostify.core.config import Settings
from dostify.core.errors import UpstreamServiceError
from dostify.services.llm.base import BaseLLMProvider, LLMResponse, LLMToolCall

logger = logging.getLogger(__name__)


class PollinationsGateway(BaseLLMProvider):
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.url = settings.ai_api_url
        self.model = settings.ai_model
        self.referrer = settings.ai_referrer
        self.timeout = settings.ai_timeout
        self._api_key = settings.ai_api_key
        self._transport = transport or httpx.AsyncHTTPTransport(retries=settings.ai_transport_retries)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        if self.referrer:
            headers["Referer"] = self.referrer
        return headers

    def build_payload(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None = None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        if self.referrer:
            payload["referrer"] = self.referrer
        return payload

    async def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None = None
    ) -> LLMResponse:
        payload = self.build_payload(messages, tools)
        logger.info(
            f"LLM call: model={self.model} messages={len(messages)} tools={len(tools or [])}"
        )

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                resp = await client.post(self.url, json=payload, headers=self._headers())
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as e:
            raise UpstreamServiceError(f"Language model timed out after {self.timeout:.0f}s") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamServiceError(
                f"Language model returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamServiceError(f"Language model unreachable: {e}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise UpstreamServiceError("Language model returned a non-JSON body") from e

        return parse_completion(data)


def parse_completion(data: Any) -> LLMResponse:
    """Read ``choices[0].message`` out of a chat completion body."""
    try:
        choice = data["choices"][0]
        message = choice["message"]
    except (KeyError, IndexError, TypeError) as e:
        raise UpstreamServiceError("Language model response had no choices") from e

    if not isinstance(message, dict):
        raise UpstreamServiceError("Language model response message was malformed")

    tool_calls = []
    for raw in message.get("tool_calls") or []:
        if not isinstance(raw, dict):
            logger.warning(f"Dropping malformed tool call: {raw!r}")
            continue
        fn = raw.get("function") or {}
        if not isinstance(fn, dict):
            logger.warning(f"Dropping tool call with malformed function: {raw!r}")
            continue
        name = fn.get("name")
        if not name:
            logger.warning(f"Dropping tool call without a function name: {raw}")
            continue
        arguments = fn.get("arguments")
        if arguments is None:
            arguments = "{}"
        elif not isinstance(arguments, str):
            # Some upstream models send an object instead of a JSON string
            arguments = json.dumps(arguments)
        tool_calls.append(
            LLMToolCall(id=raw.get("id") or f"call_{uuid.uuid4().hex[:12]}", name=name, arguments=arguments)
        )

    content = message.get("content")
    if content is not None and not isinstance(content, str):
        content = json.dumps(content)

    return LLMResponse(
        content=content,
        tool_calls=tool_calls,
        finish_reason=choice.get("finish_reason"),
    )
