"""Metric kinds, snapshots and statsd sample models"""
from dataclasses import dataclass, field
from typing import List, Optional
from enum import Enum


class MetricKind(Enum):
    """Kinds of metric a registry can hold"""
    COUNTER = "counter"
    GAUGE = "gauge"
    GAUGE_FLOAT64 = "gauge_float64"
    HISTOGRAM = "histogram"
    METER = "meter"
    TIMER = "timer"


class SampleType(Enum):
    """dogstatsd sample types"""
    COUNT = "c"
    GAUGE = "g"


@dataclass(frozen=True)
class HistogramSnapshot:
    """Read-only view of a histogram's statistics"""
    count: int
    min: int
    max: int
    mean: float
    stddev: float
    variance: float
    values: List[int] = field(default_factory=list)

    def percentiles(self, ps: List[float]) -> List[float]:
        ordered = sorted(self.values)
        return [_sorted_percentile(ordered, p) for p in ps]


@dataclass(frozen=True)
class MeterSnapshot:
    """Read-only view of a meter's count and rates (events per second)"""
    count: int
    rate1: float
    rate5: float
    rate15: float
    rate_mean: float


@dataclass(frozen=True)
class TimerSnapshot(HistogramSnapshot):
    """Histogram statistics over durations in nanoseconds, plus meter rates"""
    rate1: float = 0.0
    rate5: float = 0.0
    rate15: float = 0.0
    rate_mean: float = 0.0


@dataclass
class Sample:
    """A single statsd sample ready to be written to the wire"""
    name: str
    value: float
    sample_type: SampleType = SampleType.GAUGE
    tags: Optional[List[str]] = None
    rate: float = 1

    def __post_init__(self):
        if self.tags is None:
            self.tags = []

    def to_line(self, namespace: str = "") -> str:
        """Render in dogstatsd line format"""
        if self.sample_type == SampleType.COUNT:
            value = "%d" % self.value
        else:
            value = "%.6f" % self.value

        line = f"{namespace}{self.name}:{value}|{self.sample_type.value}"
        if self.rate != 1:
            line += f"|@{self.rate:g}"
        if self.tags:
            line += "|#" + ",".join(self.tags)
        return line


def percentile_of(values: List[int], p: float) -> float:
    """Percentile at fraction p, interpolating between neighbours.

    The position is p * (n + 1) over the sorted values; positions before the
    first element clamp to the minimum and positions past the last clamp to the
    maximum.
    """
    return _sorted_percentile(sorted(values), p)


def _sorted_percentile(ordered: List[int], p: float) -> float:
    if not ordered:
        return 0.0
    size = len(ordered)
    pos = p * (size + 1)
    if pos < 1.0:
        return float(ordered[0])
    if pos >= size:
        return float(ordered[-1])
    lower = ordered[int(pos) - 1]
    upper = ordered[int(pos)]
    return lower + (pos - int(pos)) * (upper - lower)
