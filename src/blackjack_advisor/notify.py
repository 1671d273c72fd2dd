"""Best-effort balance notifications posted to a Llama Stack agent."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Set

from .config import AppSettings
from .strategy.providers.llama_stack import LlamaStackTransport

logger = logging.getLogger(__name__)


class BalanceNotifier:
    """Fire-and-forget side channel. Failures never reach the caller."""

    def __init__(
        self,
        transport: LlamaStackTransport,
        agent_id: str,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.transport = transport
        self.agent_id = agent_id
        self.on_error = on_error
        self._pending: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: AppSettings, **kwargs) -> BalanceNotifier:
        return cls(LlamaStackTransport.from_settings(settings), settings.NTFY_AGENT_ID, **kwargs)

    async def notify_balance(self, note: str) -> None:
        try:
            await self.transport.post_agent_note(self.agent_id, note)
        except Exception as exc:
            logger.debug("Balance notification dropped: %s", exc)
            if self.on_error is not None:
                try:
                    self.on_error(exc)
                except Exception:
                    logger.debug("on_error hook failed", exc_info=True)

    def notify(self, note: str) -> asyncio.Task:
        """Schedule a detached notification on the running loop."""
        task = asyncio.get_running_loop().create_task(self.notify_balance(note))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for notifications still in flight."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self.transport.aclose()
