"""
In-process counters rendered in the Prometheus text exposition format.

Only counters are needed: request totals, quota evaluation outcomes and
unknown-plan diagnostics. Values live for the lifetime of the process.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Tuple

LabelKey = Tuple[str, ...]


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


class Counter:
    """Monotonic counter keyed by an ordered tuple of label values."""

    def __init__(self, name: str, label_names: Optional[Iterable[str]] = None, description: str = ""):
        self.name = name
        self.description = description
        self.label_names = tuple(label_names or ())
        self._series: Dict[LabelKey, float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Optional[Dict[str, str]]) -> LabelKey:
        given = labels or {}
        return tuple(str(given.get(name, "")) for name in self.label_names)

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError(f"{self.name} can only increase")
        key = self._key(labels)
        with self._lock:
            self._series[key] = self._series.get(key, 0.0) + amount

    def value(self, labels: Optional[Dict[str, str]] = None) -> float:
        key = self._key(labels)
        with self._lock:
            return self._series.get(key, 0.0)

    def render(self) -> List[str]:
        lines = []
        if self.description:
            lines.append(f"# HELP {self.name} {self.description}")
        lines.append(f"# TYPE {self.name} counter")
        with self._lock:
            series = sorted(self._series.items())
        for key, total in series:
            if self.label_names:
                pairs = ",".join(f'{n}="{_escape(v)}"' for n, v in zip(self.label_names, key))
                lines.append(f"{self.name}{{{pairs}}} {total}")
            else:
                lines.append(f"{self.name} {total}")
        return lines

    def reset(self) -> None:
        with self._lock:
            self._series.clear()


class MetricsRegistry:
    def __init__(self):
        self._counters: Dict[str, Counter] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, label_names: Optional[Iterable[str]] = None, description: str = "") -> Counter:
        """Return the counter registered under name, creating it on first use."""
        with self._lock:
            existing = self._counters.get(name)
            if existing is None:
                existing = self._counters[name] = Counter(name, label_names, description)
            return existing

    def export_prometheus(self) -> str:
        with self._lock:
            counters = list(self._counters.values())
        lines: List[str] = []
        for counter in counters:
            lines.extend(counter.render())
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        with self._lock:
            counters = list(self._counters.values())
        for counter in counters:
            counter.reset()


METRICS = MetricsRegistry()

http_requests_total = METRICS.counter(
    "http_requests_total", ["method", "status"], "HTTP requests served, by method and status code"
)
quota_evaluations_total = METRICS.counter(
    "quota_evaluations_total", ["resource", "outcome"], "Per-resource quota checks, by outcome"
)
quota_unknown_plan_total = METRICS.counter(
    "quota_unknown_plan_total", description="Subscriptions whose plan id did not resolve"
)
