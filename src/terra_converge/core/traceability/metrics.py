# src/terra_converge/core/traceability/metrics.py
"""
Sink de métricas injetado no engine.

Apenas gauges são necessários: status de falha por Configuration e
contagem de consumidores por Revision.
"""

from __future__ import annotations

import threading
from typing import Dict, FrozenSet, Mapping, Optional, Protocol, Tuple

CONFIGURATION_FAILED = "configuration_status_failed"
REVISION_IN_USE = "revision_in_use_total"

_Key = Tuple[str, FrozenSet[Tuple[str, str]]]


class MetricsSink(Protocol):
    def set_gauge(self, name: str, labels: Mapping[str, str], value: float) -> None:
        ...


class NoopMetrics:
    def set_gauge(self, name: str, labels: Mapping[str, str], value: float) -> None:
        return None


class InMemoryMetrics:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._gauges: Dict[_Key, float] = {}

    def set_gauge(self, name: str, labels: Mapping[str, str], value: float) -> None:
        with self._lock:
            self._gauges[(name, frozenset(labels.items()))] = float(value)

    def get(self, name: str, /, **labels: str) -> Optional[float]:
        with self._lock:
            return self._gauges.get((name, frozenset(labels.items())))
