"""In-process metrics registry and its dogstatsd reporter"""
from .models import MetricKind, SampleType, Sample, HistogramSnapshot, MeterSnapshot, TimerSnapshot
from .sample import UniformSample, ExpDecaySample
from .types import Counter, Gauge, GaugeFloat64, Histogram, Meter, Timer
from .registry import MetricsRegistry, DEFAULT_REGISTRY, DuplicateMetricError, MetricTypeError
from .statsd import StatsdClient, BufferedStatsdClient, StatsdConnectionError
from .reporter import (
    Reporter,
    ReporterOptions,
    with_address,
    with_prefix,
    with_registry,
    with_percentiles,
    with_tags,
    with_client,
)

__all__ = [
    'MetricKind',
    'SampleType',
    'Sample',
    'HistogramSnapshot',
    'MeterSnapshot',
    'TimerSnapshot',
    'UniformSample',
    'ExpDecaySample',
    'Counter',
    'Gauge',
    'GaugeFloat64',
    'Histogram',
    'Meter',
    'Timer',
    'MetricsRegistry',
    'DEFAULT_REGISTRY',
    'DuplicateMetricError',
    'MetricTypeError',
    'StatsdClient',
    'BufferedStatsdClient',
    'StatsdConnectionError',
    'Reporter',
    'ReporterOptions',
    'with_address',
    'with_prefix',
    'with_registry',
    'with_percentiles',
    'with_tags',
    'with_client',
]
