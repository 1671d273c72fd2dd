from __future__ import annotations

import asyncio
import json
from typing import List

import httpx

from blackjack_advisor.config import AppSettings
from blackjack_advisor.notify import BalanceNotifier
from blackjack_advisor.strategy.providers.llama_stack import LlamaStackTransport

SETTINGS = AppSettings(_env_file=None, NTFY_AGENT_ID="bank-agent")


def _notifier(handler, errors: List[BaseException] | None = None) -> BalanceNotifier:
    transport = LlamaStackTransport.from_settings(SETTINGS, httpx.MockTransport(handler))
    return BalanceNotifier(transport, SETTINGS.NTFY_AGENT_ID, on_error=None if errors is None else errors.append)


def test_detached_notification_is_delivered() -> None:
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={})

    async def _run() -> None:
        notifier = _notifier(handler)
        task = notifier.notify("Bank dropped to 40")
        assert isinstance(task, asyncio.Task)
        await notifier.aclose()

    asyncio.run(_run())
    assert received == [("/v1/agents/bank-agent/invoke", {"message": "Bank dropped to 40"})]


def test_failures_are_swallowed_and_reported_to_hook() -> None:
    errors: List[BaseException] = []

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async def _run() -> None:
        notifier = _notifier(handler, errors)
        await notifier.notify_balance("Bank is 0")
        notifier.notify("Bank is still 0")
        await notifier.aclose()

    asyncio.run(_run())
    assert len(errors) == 2
    assert all(isinstance(e, httpx.ConnectError) for e in errors)


def test_http_error_without_hook_is_silent() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    async def _run() -> None:
        notifier = _notifier(handler)
        await notifier.notify_balance("note")
        await notifier.aclose()

    asyncio.run(_run())


def test_broken_hook_does_not_escape() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    def hook(exc: BaseException) -> None:
        raise RuntimeError("hook failed")

    async def _run() -> None:
        transport = LlamaStackTransport.from_settings(SETTINGS, httpx.MockTransport(handler))
        notifier = BalanceNotifier(transport, "bank-agent", on_error=hook)
        await notifier.notify_balance("note")
        await notifier.aclose()

    asyncio.run(_run())
