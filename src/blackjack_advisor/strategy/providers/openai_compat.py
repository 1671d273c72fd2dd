"""OpenAI-compatible chat completions client, used for vLLM servers."""

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

CHAT_PATH = "/v1/chat/completions"


def _first_choice(data: Dict[str, Any]) -> Dict[str, Any]:
    if "error" in data:
        raise TransportError(f"Upstream error: {data['error']}")
    choices = data.get("choices") or []
    return choices[0] if choices else {}


class OpenAICompatTransport(InferenceTransport):
    name = "vllm"

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
    ) -> OpenAICompatTransport:
        headers = {"Authorization": f"Bearer {settings.VLLM_API_KEY}"} if settings.VLLM_API_KEY else {}
        client = build_client(
            settings.vllm_base_url,
            settings.TIMEOUT_S,
            settings.MAX_RETRIES if max_retries is None else max_retries,
            headers=headers,
            transport=transport,
        )
        return cls(client)

    def _payload(self, model_id: str, messages: Messages, sampling: Sampling, stream: bool) -> Dict[str, Any]:
        return {
            "model": model_id,
            "messages": messages,
            "stream": stream,
            "max_tokens": sampling.get("max_tokens", 200),
            "temperature": sampling.get("temperature", 0.7),
            "top_p": sampling.get("top_p", 0.9),
        }

    async def complete(self, model_id: str, messages: Messages, sampling: Sampling) -> str:
        resp = await self.client.post(CHAT_PATH, json=self._payload(model_id, messages, sampling, False))
        raise_for_status(resp)
        choice = _first_choice(resp.json())
        return content_to_text((choice.get("message") or {}).get("content"))

    async def stream(self, model_id: str, messages: Messages, sampling: Sampling) -> AsyncIterator[StreamEvent]:
        payload = self._payload(model_id, messages, sampling, True)
        async with self.client.stream("POST", CHAT_PATH, json=payload) as resp:
            raise_for_status(resp)
            async for value in iter_sse_data(resp):
                choice = _first_choice(decode_json_line(value))
                text = (choice.get("delta") or {}).get("content")
                if text:
                    yield StreamEvent(kind="text", text=content_to_text(text))
                elif choice.get("finish_reason"):
                    yield StreamEvent(kind="done")
