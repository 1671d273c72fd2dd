"""Llama Stack inference client (provider ``ls``)."""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ...config import AppSettings
from .base import (
    InferenceTransport,
    Messages,
    Sampling,
    StreamEvent,
    TransportError,
    build_client,
    content_to_text,
    decode_json_line,
    iter_sse_data,
    raise_for_status,
)

CHAT_PATH = "/v1/inference/chat-completion"
AGENT_INVOKE_PATH = "/v1/agents/{agent_id}/invoke"


def _sampling_params(sampling: Sampling) -> Dict[str, Any]:
    return {
        "max_tokens": sampling.get("max_tokens", 200),
        "strategy": {
            "type": "top_p",
            "temperature": sampling.get("temperature", 0.7),
            "top_p": sampling.get("top_p", 0.9),
        },
    }


class LlamaStackTransport(InferenceTransport):
    name = "ls"

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
    ) -> LlamaStackTransport:
        headers = {"Authorization": f"Bearer {settings.LS_API_KEY}"} if settings.LS_API_KEY else {}
        client = build_client(
            settings.ls_base_url,
            settings.TIMEOUT_S,
            settings.MAX_RETRIES if max_retries is None else max_retries,
            headers=headers,
            transport=transport,
        )
        return cls(client)

    def _payload(self, model_id: str, messages: Messages, sampling: Sampling, stream: bool) -> Dict[str, Any]:
        return {
            "model_id": model_id,
            "messages": messages,
            "stream": stream,
            "sampling_params": _sampling_params(sampling),
        }

    async def complete(self, model_id: str, messages: Messages, sampling: Sampling) -> str:
        resp = await self.client.post(CHAT_PATH, json=self._payload(model_id, messages, sampling, False))
        raise_for_status(resp)
        data = resp.json()
        message = data.get("completion_message") or data.get("message") or {}
        return content_to_text(message.get("content"))

    async def stream(self, model_id: str, messages: Messages, sampling: Sampling) -> AsyncIterator[StreamEvent]:
        payload = self._payload(model_id, messages, sampling, True)
        async with self.client.stream("POST", CHAT_PATH, json=payload) as resp:
            raise_for_status(resp)
            async for value in iter_sse_data(resp):
                data = decode_json_line(value)
                if "error" in data:
                    raise TransportError(f"Stream error: {data['error']}")
                event = data.get("event") or {}
                delta = event.get("delta") or {}
                kind = delta.get("type") or event.get("event_type") or "unknown"
                text = delta.get("text") if kind == "text" else None
                yield StreamEvent(kind=kind, text=text)

    async def post_agent_note(self, agent_id: str, note: str) -> None:
        """Post a free-text note to a Llama Stack agent."""
        resp = await self.client.post(
            AGENT_INVOKE_PATH.format(agent_id=agent_id),
            json={"message": note},
        )
        raise_for_status(resp)
