from __future__ import annotations

from blackjack_advisor.state.model import Metric, Provider
from blackjack_advisor.telemetry.metrics import MAX_SAMPLES, MetricsBuffer, get_metrics


def _metric(i: int, provider: Provider = Provider.LS, model_id: str | None = "m", ttft: float | None = None) -> Metric:
    return Metric(timestamp=float(i), provider=provider, model_id=model_id, latency_ms=float(i), ttft_ms=ttft)


def test_buffer_keeps_most_recent_200() -> None:
    buf = MetricsBuffer()
    for i in range(250):
        buf.record(_metric(i))
    samples = buf.samples()
    assert len(samples) == MAX_SAMPLES == 200
    assert [s.timestamp for s in samples] == [float(i) for i in range(50, 250)]


def test_by_provider_fixed_buckets_in_arrival_order() -> None:
    buf = MetricsBuffer()
    buf.record(_metric(1, Provider.OLLAMA))
    buf.record(_metric(2, Provider.LS))
    buf.record(_metric(3, Provider.OLLAMA))
    groups = buf.by_provider()
    assert set(groups) == {Provider.LS, Provider.OLLAMA, Provider.VLLM}
    assert [s.timestamp for s in groups[Provider.OLLAMA]] == [1.0, 3.0]
    assert groups[Provider.VLLM] == []


def test_by_model_unknown_bucket() -> None:
    buf = MetricsBuffer()
    buf.record(_metric(1, model_id="a"))
    buf.record(_metric(2, model_id=None))
    buf.record(_metric(3, model_id="a"))
    groups = buf.by_model()
    assert [s.timestamp for s in groups["a"]] == [1.0, 3.0]
    assert [s.timestamp for s in groups["unknown"]] == [2.0]


def test_summary_excludes_missing_ttft() -> None:
    buf = MetricsBuffer()
    for latency, ttft in [(100, 50), (200, None), (300, 150)]:
        buf.record(Metric(timestamp=0, provider=Provider.VLLM, latency_ms=latency, ttft_ms=ttft))
    s = buf.summary()[Provider.VLLM]
    assert s.count == 3
    assert s.avg_latency_ms == 200
    assert s.avg_ttft_ms == 100


def test_summary_empty_bucket() -> None:
    s = MetricsBuffer().summary()[Provider.LS]
    assert s.count == 0
    assert s.avg_latency_ms == 0
    assert s.avg_ttft_ms is None


def test_queries_do_not_mutate() -> None:
    buf = MetricsBuffer(maxlen=3)
    for i in range(3):
        buf.record(_metric(i))
    buf.by_provider()
    buf.by_model()
    buf.summary()
    assert len(buf) == 3


def test_process_wide_buffer_is_shared() -> None:
    assert get_metrics() is get_metrics()


def test_summary_rounds_half_up() -> None:
    buf = MetricsBuffer()
    buf.record(Metric(timestamp=0, provider=Provider.LS, latency_ms=100, ttft_ms=100))
    buf.record(Metric(timestamp=1, provider=Provider.LS, latency_ms=101, ttft_ms=101))
    s = buf.summary()[Provider.LS]
    assert s.avg_latency_ms == 101
    assert s.avg_ttft_ms == 101
