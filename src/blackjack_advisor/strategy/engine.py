"""Decision engine that drives one inference cycle and exposes a single recommend API."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import httpx

from ..config import AppSettings
from ..state.model import GameSnapshot, Metric, Provider, Recommendation
from ..telemetry.metrics import MetricsBuffer, get_metrics
from .parsers import resolve_action
from .prompt import build_messages
from .providers.base import InferenceTransport, Messages, Sampling
from .providers.llama_stack import LlamaStackTransport
from .providers.ollama import OllamaTransport
from .providers.openai_compat import OpenAICompatTransport

logger = logging.getLogger(__name__)

FALLBACK_TEXT = (
    "Unable to reach the AI model. Basic strategy fallback: "
    "stand on 17 or more, otherwise take a card."
)


@dataclass
class OrchestratorConfig:
    supports_streaming: bool = True
    timeout_s: float = 30.0
    max_retries: int = 1
    model_resolver: Callable[[Provider], str] = lambda provider: "unknown"
    sampling: Sampling = field(default_factory=dict)


class RecommendationEngine:
    """Prompt -> transport (stream, then single shot, then fixed text) -> decision -> metric."""

    def __init__(
        self,
        transports: Mapping[Provider, InferenceTransport],
        config: Optional[OrchestratorConfig] = None,
        metrics: Optional[MetricsBuffer] = None,
    ) -> None:
        self.transports: Dict[Provider, InferenceTransport] = {Provider(p): t for p, t in transports.items()}
        self.config = config or OrchestratorConfig()
        self.metrics = metrics if metrics is not None else get_metrics()

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        metrics: Optional[MetricsBuffer] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        config: Optional[OrchestratorConfig] = None,
    ) -> RecommendationEngine:
        if config is None:
            config = OrchestratorConfig(
                supports_streaming=settings.STREAMING,
                timeout_s=settings.TIMEOUT_S,
                max_retries=settings.MAX_RETRIES,
                model_resolver=settings.model_for,
                sampling=settings.sampling(),
            )
        retries = config.max_retries
        transports: Dict[Provider, InferenceTransport] = {
            Provider.LS: LlamaStackTransport.from_settings(settings, http_transport, retries),
            Provider.OLLAMA: OllamaTransport.from_settings(settings, http_transport, retries),
            Provider.VLLM: OpenAICompatTransport.from_settings(settings, http_transport, retries),
        }
        return cls(transports, config, metrics)

    async def aclose(self) -> None:
        for transport in self.transports.values():
            await transport.aclose()

    async def _stream_text(
        self,
        transport: InferenceTransport,
        model_id: str,
        messages: Messages,
        started: float,
    ) -> Tuple[str, Optional[float]]:
        chunks = []
        ttft_ms: Optional[float] = None
        async for event in transport.stream(model_id, messages, self.config.sampling):
            if event.kind != "text" or not event.text:
                continue
            chunks.append(event.text)
            if ttft_ms is None:
                ttft_ms = (time.perf_counter() - started) * 1000
        return "".join(chunks), ttft_ms

    async def _fetch_text(
        self,
        provider: Provider,
        model_id: str,
        messages: Messages,
        started: float,
    ) -> Tuple[str, Optional[float], bool]:
        """Return (text, ttft_ms, degraded). Never raises transport errors."""
        transport = self.transports.get(provider)
        if transport is None:
            logger.error("No transport configured for provider %s", provider.value)
            return FALLBACK_TEXT, None, True

        timeout = self.config.timeout_s
        if self.config.supports_streaming:
            try:
                text, ttft_ms = await asyncio.wait_for(
                    self._stream_text(transport, model_id, messages, started), timeout
                )
                return text, ttft_ms, False
            except Exception as exc:
                logger.warning("Streaming failed for %s (%s); retrying without streaming", provider.value, exc)

        try:
            text = await asyncio.wait_for(
                transport.complete(model_id, messages, self.config.sampling), timeout
            )
            return text, None, False
        except Exception as exc:
            logger.warning("Inference failed for %s (%s); using fallback text", provider.value, exc)
            return FALLBACK_TEXT, None, True

    async def get_recommendation(
        self,
        snapshot: GameSnapshot,
        provider: Provider | str = Provider.LS,
    ) -> Recommendation:
        provider = Provider(provider)
        model_id = self.config.model_resolver(provider)
        messages = build_messages(snapshot)

        started = time.perf_counter()
        text, ttft_ms, degraded = await self._fetch_text(provider, model_id, messages, started)
        latency_ms = (time.perf_counter() - started) * 1000

        action, reason = resolve_action(text, snapshot)
        rationale = _as_rationale(reason)
        if degraded and rationale is None:
            rationale = FALLBACK_TEXT

        recommendation = Recommendation(
            provider=provider,
            model_id=model_id,
            action=action,
            rationale=rationale,
            latency_ms=latency_ms,
            ttft_ms=ttft_ms,
        )
        self.metrics.record(
            Metric(
                timestamp=time.time() * 1000,
                provider=provider,
                model_id=model_id,
                latency_ms=latency_ms,
                ttft_ms=ttft_ms,
            )
        )
        logger.debug(
            "recommendation: provider=%s model=%s action=%s latency=%.1fms ttft=%s",
            provider.value, model_id, action.value, latency_ms,
            f"{ttft_ms:.1f}ms" if ttft_ms is not None else "n/a",
        )
        return recommendation


def _as_rationale(reason: Any) -> Optional[str]:
    if reason is None:
        return None
    return reason if isinstance(reason, str) else str(reason)


def recommend(
    snapshot: GameSnapshot,
    provider: Provider | str = Provider.LS,
    settings: Optional[AppSettings] = None,
    metrics: Optional[MetricsBuffer] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Recommendation:
    """
    Demande une recommandation de jeu (wrapper synchrone).

    Args:
        snapshot: État de la main (GameSnapshot)
        provider: Fournisseur d'inférence (ls, ollama, vllm)
        settings: Configuration, chargée depuis l'environnement par défaut
        metrics: Buffer de métriques, le buffer global par défaut
        http_transport: Transport httpx à utiliser (tests, proxys)

    Returns:
        Recommendation: action, justification et mesures de latence
    """
    engine = RecommendationEngine.from_settings(settings or AppSettings(), metrics, http_transport)

    async def _run() -> Recommendation:
        try:
            return await engine.get_recommendation(snapshot, provider)
        finally:
            await engine.aclose()

    return asyncio.run(_run())
