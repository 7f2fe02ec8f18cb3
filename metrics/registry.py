"""Metrics registry holding named live metrics"""
import threading
from typing import Any, Callable, Dict, List, Optional, Union

from .models import MetricKind
from .sample import Reservoir
from .types import Counter, Gauge, GaugeFloat64, Histogram, Meter, Timer
from logging_config import get_logger


logger = get_logger(__name__)

Metric = Union[Counter, Gauge, GaugeFloat64, Histogram, Meter, Timer]


class DuplicateMetricError(ValueError):
    """A metric with this name is already registered"""


class MetricTypeError(ValueError):
    """A metric with this name exists but is of a different kind"""


class MetricsRegistry:
    """Central registry for named metrics"""

    def __init__(self):
        self._metrics: Dict[str, Metric] = {}
        self._lock = threading.Lock()

    def each(self, fn: Callable[[str, Metric], Any]) -> None:
        """Call fn(name, metric) for every registered metric.

        Iterates over a copy, so fn may register or unregister metrics.
        """
        with self._lock:
            items = list(self._metrics.items())
        for name, metric in items:
            fn(name, metric)

    def get(self, name: str) -> Optional[Metric]:
        with self._lock:
            return self._metrics.get(name)

    def register(self, name: str, metric: Metric) -> None:
        """Register a new metric"""
        if not isinstance(getattr(metric, "kind", None), MetricKind):
            raise ValueError(f"Unsupported metric type: {type(metric).__name__}")

        with self._lock:
            if name in self._metrics:
                raise DuplicateMetricError(f"Duplicate metric: {name}")
            self._metrics[name] = metric
        logger.debug("Registered metric", metric=name, kind=metric.kind.value)

    def get_or_register(self, name: str, factory: Callable[[], Metric]) -> Metric:
        """Return the metric under name, creating it with factory if missing"""
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = factory()
                self._metrics[name] = metric
        return metric

    def unregister(self, name: str) -> None:
        with self._lock:
            self._metrics.pop(name, None)

    def unregister_all(self) -> None:
        with self._lock:
            self._metrics.clear()

    def names(self) -> List[str]:
        with self._lock:
            return list(self._metrics.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)

    def counter(self, name: str) -> Counter:
        return self._typed(name, Counter, Counter)

    def gauge(self, name: str) -> Gauge:
        return self._typed(name, Gauge, Gauge)

    def gauge_float64(self, name: str) -> GaugeFloat64:
        return self._typed(name, GaugeFloat64, GaugeFloat64)

    def histogram(self, name: str, sample: Optional[Reservoir] = None) -> Histogram:
        return self._typed(name, Histogram, lambda: Histogram(sample))

    def meter(self, name: str) -> Meter:
        return self._typed(name, Meter, Meter)

    def timer(self, name: str) -> Timer:
        return self._typed(name, Timer, Timer)

    def _typed(self, name: str, cls: type, factory: Callable[[], Metric]) -> Metric:
        metric = self.get_or_register(name, factory)
        if not isinstance(metric, cls):
            raise MetricTypeError(
                f"Metric {name} is a {metric.kind.value}, not a {cls.kind.value}"
            )
        return metric

    def get_status(self) -> Dict[str, str]:
        """Kind of every registered metric, keyed by name"""
        with self._lock:
            return {name: metric.kind.value for name, metric in self._metrics.items()}


DEFAULT_REGISTRY = MetricsRegistry()
