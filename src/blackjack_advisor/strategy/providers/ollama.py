"""Client Ollama natif (``/api/chat``)."""

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
    raise_for_status,
)

CHAT_PATH = "/api/chat"


class OllamaTransport(InferenceTransport):
    name = "ollama"

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
    ) -> OllamaTransport:
        client = build_client(
            settings.ollama_base_url,
            settings.TIMEOUT_S,
            settings.MAX_RETRIES if max_retries is None else max_retries,
            transport=transport,
        )
        return cls(client)

    def _payload(self, model_id: str, messages: Messages, sampling: Sampling, stream: bool) -> Dict[str, Any]:
        return {
            "model": model_id,
            "messages": messages,
            "stream": stream,
            "options": {
                "temperature": sampling.get("temperature", 0.7),
                "top_p": sampling.get("top_p", 0.9),
                "num_predict": sampling.get("max_tokens", 200),
            },
        }

    async def complete(self, model_id: str, messages: Messages, sampling: Sampling) -> str:
        resp = await self.client.post(CHAT_PATH, json=self._payload(model_id, messages, sampling, False))
        raise_for_status(resp)
        data = resp.json()
        if "error" in data:
            raise TransportError(f"Ollama error: {data['error']}")
        return content_to_text((data.get("message") or {}).get("content"))

    async def stream(self, model_id: str, messages: Messages, sampling: Sampling) -> AsyncIterator[StreamEvent]:
        payload = self._payload(model_id, messages, sampling, True)
        async with self.client.stream("POST", CHAT_PATH, json=payload) as resp:
            raise_for_status(resp)
            async for line in resp.aiter_lines():
                if not line.strip():
                    continue
                data = decode_json_line(line)
                if "error" in data:
                    raise TransportError(f"Ollama error: {data['error']}")
                text = (data.get("message") or {}).get("content")
                if text:
                    yield StreamEvent(kind="text", text=text)
                if data.get("done"):
                    yield StreamEvent(kind="done")
                    return
