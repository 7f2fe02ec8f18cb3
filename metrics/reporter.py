"""Reporter translating registry snapshots into dogstatsd samples"""
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .models import MetricKind
from .registry import DEFAULT_REGISTRY, Metric, MetricsRegistry
from .statsd import BufferedStatsdClient, StatsdClient
from config import Config
from logging_config import get_logger


logger = get_logger(__name__)

# Number of samples buffered into one datagram; 1 or less sends each sample alone.
FLUSH_LENGTH = 32

DEFAULT_ADDRESS = "127.0.0.1:8125"
DEFAULT_PERCENTILES = [0.50, 0.75, 0.95, 0.99, 0.999]
SAMPLE_RATE = 1


@dataclass
class ReporterOptions:
    """Reporter settings before finalization"""
    address: str = DEFAULT_ADDRESS
    prefix: str = ""
    registry: MetricsRegistry = DEFAULT_REGISTRY
    percentiles: Optional[List[float]] = field(default_factory=lambda: list(DEFAULT_PERCENTILES))
    tags: List[str] = field(default_factory=list)
    client: Optional[StatsdClient] = None


Option = Callable[[ReporterOptions], None]


def with_address(address: str) -> Option:
    """Send samples to this UDP host:port"""
    def apply(opts: ReporterOptions) -> None:
        opts.address = address
    return apply


def with_prefix(prefix: str) -> Option:
    """Namespace every sample name; a trailing "." is added when missing"""
    def apply(opts: ReporterOptions) -> None:
        if prefix and not prefix.endswith("."):
            opts.prefix = prefix + "."
        else:
            opts.prefix = prefix
    return apply


def with_registry(registry: MetricsRegistry) -> Option:
    """Report the metrics of this registry"""
    def apply(opts: ReporterOptions) -> None:
        opts.registry = registry
    return apply


def with_percentiles(percentiles: Optional[List[float]]) -> Option:
    """Percentiles emitted for histograms and timers; None or [] disables them"""
    def apply(opts: ReporterOptions) -> None:
        opts.percentiles = list(percentiles) if percentiles else []
    return apply


def with_tags(tags: List[str]) -> Option:
    """Tags attached to every sample"""
    def apply(opts: ReporterOptions) -> None:
        opts.tags = list(tags)
    return apply


def with_client(client: StatsdClient) -> Option:
    """Use a pre-built statsd client instead of creating one"""
    def apply(opts: ReporterOptions) -> None:
        opts.client = client
    return apply


def new_client(address: str, flush_length: int) -> StatsdClient:
    """Buffered client when flush_length > 1, unbuffered otherwise"""
    if flush_length > 1:
        return BufferedStatsdClient(address, flush_length)
    return StatsdClient(address)


def percentile_labels(percentiles: List[float]) -> List[str]:
    """Sample name suffixes for percentiles, e.g. 0.95 -> ".pct-95.00" """
    return [".pct-%.2f" % (p * 100.0) for p in percentiles]


class Reporter:
    """Datadog metrics reporter.

    Each flush walks the registry and emits samples per metric kind. Counters
    are reported as the delta since the previous flush; timers are reported
    in milliseconds. Flushes are serialized by an internal lock.

    Raises StatsdConnectionError when no client is given and one cannot be
    created for the configured address.
    """

    def __init__(self, *options: Option):
        opts = ReporterOptions()
        for option in options:
            option(opts)

        self.address = opts.address
        self.prefix = opts.prefix
        self.registry = opts.registry
        self.tags = opts.tags
        self.percentiles = opts.percentiles or []
        self.labels = percentile_labels(self.percentiles) if self.percentiles else []

        self.client = opts.client
        if self.client is None:
            self.client = new_client(self.address, FLUSH_LENGTH)
        self.client.namespace = self.prefix

        self._baselines: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._handlers = {
            MetricKind.COUNTER: self._submit_counter,
            MetricKind.GAUGE: self._submit_gauge,
            MetricKind.GAUGE_FLOAT64: self._submit_gauge_float64,
            MetricKind.HISTOGRAM: self._submit_histogram,
            MetricKind.METER: self._submit_meter,
            MetricKind.TIMER: self._submit_timer,
        }

    @classmethod
    def from_config(cls, config: Config, registry: Optional[MetricsRegistry] = None) -> "Reporter":
        """Build a reporter from a Config instance"""
        options = [
            with_address(config.statsd_address),
            with_prefix(config.statsd_prefix),
            with_percentiles(config.percentiles),
            with_tags(config.statsd_tags),
            with_client(new_client(config.statsd_address, config.flush_length)),
        ]
        if registry is not None:
            options.append(with_registry(registry))
        return cls(*options)

    def flush(self) -> None:
        """Submit one snapshot of every registered metric.

        Always completes and returns None. Send failures never raise; they
        are logged and counted in ``client.send_errors``.
        """
        self._submit()

    def flush_with_interval(self, interval: float) -> None:
        """Flush every interval seconds, forever"""
        next_tick = time.monotonic() + interval
        while True:
            delay = next_tick - time.monotonic()
            if delay > 0:
                time.sleep(delay)
            next_tick += interval
            self._submit()

    def close(self) -> None:
        self.client.close()

    def baseline(self, name: str) -> int:
        """Cumulative count last reported for a counter"""
        with self._lock:
            return self._baselines.get(name, 0)

    def _submit(self) -> None:
        with self._lock:
            start_time = time.time()
            self.registry.each(self._submit_metric)
            self.client.flush()
            logger.debug(
                "Submitted metrics",
                metrics_count=len(self.registry),
                flush_time_seconds=round(time.time() - start_time, 3),
                event_type="reporter_flush",
            )

    def _submit_metric(self, name: str, metric: Metric) -> None:
        handler = self._handlers.get(getattr(metric, "kind", None))
        if handler is None:
            logger.debug("Skipping unsupported metric", metric=name, type=type(metric).__name__)
            return
        handler(name, metric)

    def _gauge(self, name: str, value: float) -> None:
        self.client.gauge(name, value, self.tags, SAMPLE_RATE)

    def _submit_counter(self, name, metric):
        value = metric.count()
        last = self._baselines.get(name, 0)
        self.client.count(name, value - last, self.tags, SAMPLE_RATE)
        self._baselines[name] = value

    def _submit_gauge(self, name, metric):
        self._gauge(name, float(metric.value()))

    def _submit_gauge_float64(self, name, metric):
        self._gauge(name, metric.value())

    def _submit_histogram(self, name, metric):
        ms = metric.snapshot()
        self._gauge(name + ".count", float(ms.count))
        self._gauge(name + ".max", float(ms.max))
        self._gauge(name + ".min", float(ms.min))
        self._gauge(name + ".mean", ms.mean)
        self._gauge(name + ".stddev", ms.stddev)
        self._gauge(name + ".var", ms.variance)

        if self.percentiles:
            values = ms.percentiles(self.percentiles)
            for label, value in zip(self.labels, values):
                self._gauge(name + label, value)

    def _submit_meter(self, name, metric):
        ms = metric.snapshot()
        self._gauge(name + ".count", float(ms.count))
        self._gauge(name + ".rate1", ms.rate1)
        self._gauge(name + ".rate5", ms.rate5)
        self._gauge(name + ".rate15", ms.rate15)
        self._gauge(name + ".mean", ms.rate_mean)

    def _submit_timer(self, name, metric):
        ms = metric.snapshot()
        self._gauge(name + ".count", float(ms.count))
        self._gauge(name + ".max", to_milliseconds(ms.max))
        self._gauge(name + ".min", to_milliseconds(ms.min))
        self._gauge(name + ".mean", to_milliseconds(ms.mean))
        self._gauge(name + ".stddev", to_milliseconds(ms.stddev))

        if self.percentiles:
            values = ms.percentiles(self.percentiles)
            for label, value in zip(self.labels, values):
                self._gauge(name + label, to_milliseconds(value))


def to_milliseconds(nanoseconds: float) -> float:
    return nanoseconds / 1e6
