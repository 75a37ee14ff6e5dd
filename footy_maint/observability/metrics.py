"""
In-process metrics for the maintenance service.

Counters, gauges and running-summary histograms. There is no scrape
endpoint: the coordinator attaches REGISTRY.to_dict() to every
tick_finished record, so the values travel with the logs.
"""

import threading
from dataclasses import dataclass, field


@dataclass
class _Metric:
    name: str
    description: str = ""
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def export(self) -> dict[str, float | int | str]:
        raise NotImplementedError


@dataclass
class Counter(_Metric):
    """Monotonic count, e.g. ticks run or snapshots written."""

    _value: int = 0

    def inc(self, amount: int = 1) -> None:
        if amount < 0:
            raise ValueError(f"Counter {self.name} cannot decrease")
        with self._lock:
            self._value += amount

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def export(self) -> dict[str, float | int | str]:
        return {"type": "counter", "value": self.value}


@dataclass
class Gauge(_Metric):
    _value: float = 0.0

    def set(self, value: float) -> None:
        with self._lock:
            self._value = value

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def export(self) -> dict[str, float | int | str]:
        return {"type": "gauge", "value": self.value}


@dataclass
class Histogram(_Metric):
    """
    Running summary of observations (count, sum, min, max).

    Individual samples are not kept, so memory stays constant for the life
    of the daemon.
    """

    _count: int = 0
    _sum: float = 0.0
    _min: float | None = None
    _max: float | None = None

    def observe(self, value: float) -> None:
        with self._lock:
            self._count += 1
            self._sum += value
            self._min = value if self._min is None else min(self._min, value)
            self._max = value if self._max is None else max(self._max, value)

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def sum(self) -> float:
        with self._lock:
            return self._sum

    @property
    def avg(self) -> float:
        with self._lock:
            return self._sum / self._count if self._count else 0.0

    def export(self) -> dict[str, float | int | str]:
        with self._lock:
            return {
                "type": "histogram",
                "count": self._count,
                "sum": round(self._sum, 6),
                "avg": round(self._sum / self._count, 6) if self._count else 0.0,
                "min": self._min if self._min is not None else 0.0,
                "max": self._max if self._max is not None else 0.0,
            }


class MetricsRegistry:
    """Name -> metric, get-or-create per type."""

    def __init__(self) -> None:
        self._metrics: dict[str, _Metric] = {}
        self._lock = threading.Lock()

    def _get(self, cls: type, name: str, description: str):
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = cls(name, description)
            elif not isinstance(metric, cls):
                raise TypeError(f"Metric {name} is a {type(metric).__name__}, not {cls.__name__}")
            return metric

    def counter(self, name: str, description: str = "") -> Counter:
        return self._get(Counter, name, description)

    def gauge(self, name: str, description: str = "") -> Gauge:
        return self._get(Gauge, name, description)

    def histogram(self, name: str, description: str = "") -> Histogram:
        return self._get(Histogram, name, description)

    def to_dict(self) -> dict[str, dict[str, float | int | str]]:
        """Snapshot of every metric, keyed by name."""
        with self._lock:
            metrics = list(self._metrics.values())
        return {metric.name: metric.export() for metric in metrics}


REGISTRY = MetricsRegistry()


def get_registry() -> MetricsRegistry:
    return REGISTRY


ticks_total = REGISTRY.counter("ticks_total", "Maintenance ticks run")
tick_failures = REGISTRY.counter("tick_failures_total", "Maintenance ticks that failed")
tick_duration = REGISTRY.histogram("tick_duration_seconds", "Maintenance tick duration")
last_tick_ok = REGISTRY.gauge("last_tick_ok", "1 if the last tick finished ok, else 0")
slow_queries = REGISTRY.counter("slow_queries_total", "Queries over the slow threshold")
backups_created = REGISTRY.counter("backups_created_total", "Database snapshots written")
