"""Bounded, process-wide buffer of recommendation timings."""

from __future__ import annotations

import math
import threading
from collections import deque
from typing import Deque, Dict, List, Optional

from ..state.model import Metric, Provider, ProviderSummary

MAX_SAMPLES = 200
UNKNOWN_MODEL = "unknown"


class MetricsBuffer:
    """FIFO ring of :class:`Metric` samples with per-provider and per-model views.

    Queries are derived from the current contents and never mutate them.
    """

    def __init__(self, maxlen: int = MAX_SAMPLES) -> None:
        if maxlen <= 0:
            raise ValueError("maxlen must be positive")
        self.maxlen = maxlen
        self._samples: Deque[Metric] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._samples)

    def record(self, metric: Metric) -> None:
        """Append a sample, dropping the oldest once the bound is exceeded."""
        with self._lock:
            self._samples.append(metric)

    def samples(self) -> List[Metric]:
        with self._lock:
            return list(self._samples)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def by_provider(self) -> Dict[Provider, List[Metric]]:
        result: Dict[Provider, List[Metric]] = {p: [] for p in Provider}
        for s in self.samples():
            result[s.provider].append(s)
        return result

    def by_model(self) -> Dict[str, List[Metric]]:
        result: Dict[str, List[Metric]] = {}
        for s in self.samples():
            result.setdefault(s.model_id or UNKNOWN_MODEL, []).append(s)
        return result

    def summary(self) -> Dict[Provider, ProviderSummary]:
        return {p: _aggregate(items) for p, items in self.by_provider().items()}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _aggregate(items: List[Metric]) -> ProviderSummary:
    if not items:
        return ProviderSummary(count=0, avg_latency_ms=0, avg_ttft_ms=None)
    avg_latency = sum(s.latency_ms for s in items) / len(items)
    ttfts = [s.ttft_ms for s in items if s.ttft_ms is not None]
    avg_ttft: Optional[int] = _round_half_up(sum(ttfts) / len(ttfts)) if ttfts else None
    return ProviderSummary(
        count=len(items),
        avg_latency_ms=_round_half_up(avg_latency),
        avg_ttft_ms=avg_ttft,
    )


METRICS = MetricsBuffer()


def get_metrics() -> MetricsBuffer:
    """Return the process-wide metrics buffer."""
    return METRICS
