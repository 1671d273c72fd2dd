"""Inference transport base interfaces and helpers."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx


Messages = List[Dict[str, str]]
Sampling = Dict[str, Any]


class TransportError(RuntimeError):
    """Raised when an inference endpoint fails or returns an unusable payload."""


@dataclass(frozen=True)
class StreamEvent:
    """One event of a streamed reply; only ``kind == "text"`` carries content."""
    kind: str
    text: Optional[str] = None


def content_to_text(content: Any) -> str:
    """Normalise a response payload to plain text.

    Accepts a string, a single typed block or a list of blocks
    (``{"type": "text", "text": ...}``); non-text blocks are ignored.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        content = [content]
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type", "text") == "text":
                text = block.get("text")
                if isinstance(text, str):
                    parts.append(text)
        return "".join(parts)
    return str(content)


def decode_json_line(line: str) -> Dict[str, Any]:
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise TransportError(f"Malformed stream line: {line[:80]!r}") from e
    if not isinstance(data, dict):
        raise TransportError(f"Unexpected stream payload: {line[:80]!r}")
    return data


async def iter_sse_data(response: httpx.Response) -> AsyncIterator[str]:
    """Yield the ``data:`` payloads of a server-sent-events response."""
    async for line in response.aiter_lines():
        line = line.strip()
        if not line or line.startswith(":"):
            continue
        key, _, value = line.partition(":")
        if key != "data":
            continue
        value = value.strip()
        if value == "[DONE]":
            return
        yield value


def raise_for_status(response: httpx.Response) -> None:
    if response.is_error:
        raise TransportError(
            f"HTTP {response.status_code} from {response.request.url}"
        )


def build_client(
    base_url: str,
    timeout_s: float,
    max_retries: int = 1,
    headers: Optional[Dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """AsyncClient with at most one connection retry at the transport layer."""
    if transport is None:
        transport = httpx.AsyncHTTPTransport(retries=min(max(max_retries, 0), 1))
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout_s,
        headers=headers or {},
        transport=transport,
    )


class InferenceTransport(ABC):
    """Chat completion endpoint, single-shot or streamed."""

    name: str = "base"

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    @abstractmethod
    async def complete(self, model_id: str, messages: Messages, sampling: Sampling) -> str:  # pragma: no cover
        raise NotImplementedError

    @abstractmethod
    def stream(self, model_id: str, messages: Messages, sampling: Sampling) -> AsyncIterator[StreamEvent]:  # pragma: no cover
        raise NotImplementedError

    async def aclose(self) -> None:
        await self.client.aclose()
