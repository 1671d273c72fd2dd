from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional, Sequence

from blackjack_advisor.state.model import Action, GameSnapshot, Provider, Recommendation
from blackjack_advisor.strategy.engine import (
    FALLBACK_TEXT,
    OrchestratorConfig,
    RecommendationEngine,
)
from blackjack_advisor.strategy.parsers import heuristic_action
from blackjack_advisor.strategy.providers.base import InferenceTransport, StreamEvent, TransportError
from blackjack_advisor.telemetry.metrics import MetricsBuffer


class FakeTransport(InferenceTransport):
    name = "fake"

    def __init__(
        self,
        events: Sequence[StreamEvent] = (),
        text: str = "",
        stream_error: Optional[Exception] = None,
        complete_error: Optional[Exception] = None,
        stall_s: float = 0.0,
        gap_s: float = 0.0,
    ) -> None:
        self.events = list(events)
        self.text = text
        self.stream_error = stream_error
        self.complete_error = complete_error
        self.stall_s = stall_s
        self.gap_s = gap_s
        self.calls: List[str] = []

    async def complete(self, model_id, messages, sampling) -> str:
        self.calls.append("complete")
        if self.complete_error is not None:
            raise self.complete_error
        return self.text

    async def stream(self, model_id, messages, sampling) -> AsyncIterator[StreamEvent]:
        self.calls.append("stream")
        for i, event in enumerate(self.events):
            if i and self.gap_s:
                await asyncio.sleep(self.gap_s)
            yield event
        if self.stall_s:
            await asyncio.sleep(self.stall_s)
        if self.stream_error is not None:
            raise self.stream_error

    async def aclose(self) -> None:
        return None


SNAPSHOT = GameSnapshot(cards=["Ts", "6d"], total=16, dealer_up_card="T", bet=10, bank=100)
REPLY = 'I\'d hit here.\n{"action":"hit","reason":"16 vs 10 favors hitting"}'


def _engine(transport: InferenceTransport, streaming: bool = True, timeout_s: float = 5.0) -> RecommendationEngine:
    config = OrchestratorConfig(
        supports_streaming=streaming,
        timeout_s=timeout_s,
        model_resolver=lambda provider: f"model-{provider.value}",
    )
    return RecommendationEngine({Provider.LS: transport}, config, MetricsBuffer())


def _run(engine: RecommendationEngine, snapshot: GameSnapshot = SNAPSHOT, provider: Provider = Provider.LS) -> Recommendation:
    return asyncio.run(engine.get_recommendation(snapshot, provider))


def _chunks(text: str, size: int = 7) -> List[StreamEvent]:
    return [StreamEvent("text", text[i:i + size]) for i in range(0, len(text), size)]


def test_single_shot_end_to_end() -> None:
    transport = FakeTransport(text=REPLY)
    rec = _run(_engine(transport, streaming=False))
    assert rec.action is Action.HIT
    assert rec.rationale == "16 vs 10 favors hitting"
    assert rec.provider is Provider.LS
    assert rec.model_id == "model-ls"
    assert rec.ttft_ms is None
    assert rec.latency_ms >= 0
    assert transport.calls == ["complete"]


def test_streaming_accumulates_text_events_only() -> None:
    events = [StreamEvent("start"), *_chunks(REPLY), StreamEvent("tool_call", "stand"), StreamEvent("done")]
    transport = FakeTransport(events=events)
    rec = _run(_engine(transport))
    assert rec.action is Action.HIT
    assert rec.rationale == "16 vs 10 favors hitting"
    assert rec.ttft_ms is not None
    assert 0 <= rec.ttft_ms <= rec.latency_ms
    assert transport.calls == ["stream"]


def test_ttft_is_taken_from_first_fragment_only() -> None:
    events = [StreamEvent("text", "Stand, "), StreamEvent("text", "20 is strong. "), StreamEvent("text", "stand")]
    rec = _run(_engine(FakeTransport(events=events, gap_s=0.05)))
    assert rec.ttft_ms is not None
    assert rec.ttft_ms < 50
    assert rec.latency_ms - rec.ttft_ms >= 90
    assert rec.action is Action.STAND


def test_stream_without_fragments_has_no_ttft() -> None:
    transport = FakeTransport(events=[StreamEvent("start"), StreamEvent("done")])
    rec = _run(_engine(transport))
    assert rec.ttft_ms is None
    assert rec.action is Action.UNKNOWN
    assert rec.rationale is None


def test_stream_failure_falls_back_to_single_shot() -> None:
    transport = FakeTransport(
        events=_chunks('{"action":"stand"'),
        stream_error=TransportError("connection reset"),
        text='{"action":"stand","reason":"20 is strong"}',
    )
    rec = _run(_engine(transport))
    assert transport.calls == ["stream", "complete"]
    assert rec.action is Action.STAND
    assert rec.rationale == "20 is strong"
    assert rec.ttft_ms is None


def test_stream_timeout_falls_back_to_single_shot() -> None:
    transport = FakeTransport(stall_s=1.0, text=REPLY)
    rec = _run(_engine(transport, timeout_s=0.05))
    assert transport.calls == ["stream", "complete"]
    assert rec.action is Action.HIT
    assert rec.ttft_ms is None


def test_total_failure_uses_fallback_text() -> None:
    transport = FakeTransport(stream_error=OSError("down"), complete_error=TransportError("HTTP 503"))
    engine = _engine(transport)
    rec = _run(engine)
    assert rec.action is heuristic_action(FALLBACK_TEXT, SNAPSHOT.can_double, SNAPSHOT.can_split)
    assert rec.action is Action.STAND
    assert rec.rationale == FALLBACK_TEXT
    assert rec.ttft_ms is None
    assert len(engine.metrics) == 1


def test_missing_transport_degrades() -> None:
    engine = _engine(FakeTransport(text=REPLY))
    rec = _run(engine, provider=Provider.VLLM)
    assert rec.provider is Provider.VLLM
    assert rec.rationale == FALLBACK_TEXT


def test_heuristic_uses_snapshot_capabilities() -> None:
    snap = GameSnapshot(cards=["5s", "6d"], total=11, dealer_up_card="6h", can_double=True)
    rec = _run(_engine(FakeTransport(text="Hit or double? Double down for sure."), streaming=False), snap)
    assert rec.action is Action.DOUBLE
    assert rec.rationale is None


def test_every_call_records_a_metric() -> None:
    engine = _engine(FakeTransport(events=_chunks(REPLY)))
    _run(engine)
    _run(engine)
    samples = engine.metrics.samples()
    assert len(samples) == 2
    assert all(s.provider is Provider.LS and s.model_id == "model-ls" for s in samples)
    assert all(s.ttft_ms is not None for s in samples)
    assert engine.metrics.summary()[Provider.LS].count == 2
