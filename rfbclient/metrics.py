"""Simple counters and gauges for tracking connection statistics."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator

MAX_UINT64 = 2**64 - 1


class Metric(ABC):
    """A named non-negative integer measurement."""

    name: str
    value: int

    @abstractmethod
    def adjust(self, value: int) -> None:
        """Increase or decrease the metric."""

    @abstractmethod
    def increment(self) -> None:
        """Increase the metric by one."""

    @abstractmethod
    def reset(self) -> None:
        """Set the metric back to zero."""


@dataclass
class Counter(Metric):
    """A monotonically increasing counter."""

    name: str = ""
    value: int = 0

    def adjust(self, value: int) -> None:
        raise TypeError("A Counter metric cannot be adjusted")

    def increment(self) -> None:
        self.value += 1

    def reset(self) -> None:
        self.value = 0


@dataclass
class Gauge(Metric):
    """A non-negative value that saturates at zero and at the 64-bit maximum."""

    name: str = ""
    value: int = 0

    def adjust(self, value: int) -> None:
        self.value = min(max(self.value + value, 0), MAX_UINT64)

    def increment(self) -> None:
        raise TypeError("A Gauge metric cannot be incremented")

    def reset(self) -> None:
        self.value = 0


class MetricRegistry:
    """A collection of uniquely named metrics."""

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}

    def add(self, metric: Metric) -> Metric:
        if metric.name in self._metrics:
            raise ValueError(f"Metric {metric.name} already exists.")
        self._metrics[metric.name] = metric
        return metric

    def counter(self, name: str) -> Counter:
        counter = Counter(name)
        self.add(counter)
        return counter

    def gauge(self, name: str) -> Gauge:
        gauge = Gauge(name)
        self.add(gauge)
        return gauge

    def adjust(self, name: str, value: int) -> None:
        """Adjust the named metric; unknown names are ignored."""
        metric = self._metrics.get(name)
        if metric is not None:
            metric.adjust(value)

    def varz(self) -> str:
        """Return every metric value, one per line."""
        return "".join(f"{metric.value}\n" for metric in self._metrics.values())

    def reset(self) -> None:
        """Forget every registered metric."""
        self._metrics.clear()

    def __getitem__(self, name: str) -> Metric:
        return self._metrics[name]

    def __contains__(self, name: object) -> bool:
        return name in self._metrics

    def __iter__(self) -> Iterator[Metric]:
        return iter(self._metrics.values())

    def __len__(self) -> int:
        return len(self._metrics)