"""Live metric types held by a registry"""
import math
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from .models import MetricKind, MeterSnapshot, TimerSnapshot
from .sample import ExpDecaySample, Reservoir, UniformSample


TICK_INTERVAL = 5.0  # seconds between EWMA ticks


class Counter:
    """Monotonic cumulative count"""

    kind = MetricKind.COUNTER

    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def dec(self, n: int = 1) -> None:
        with self._lock:
            self._count -= n

    def clear(self) -> None:
        with self._lock:
            self._count = 0

    def count(self) -> int:
        with self._lock:
            return self._count


class Gauge:
    """Integer point-in-time value"""

    kind = MetricKind.GAUGE

    def __init__(self, value: int = 0):
        self._value = int(value)

    def update(self, value: int) -> None:
        self._value = int(value)

    def value(self) -> int:
        return self._value


class GaugeFloat64:
    """Floating point-in-time value"""

    kind = MetricKind.GAUGE_FLOAT64

    def __init__(self, value: float = 0.0):
        self._value = float(value)

    def update(self, value: float) -> None:
        self._value = float(value)

    def value(self) -> float:
        return self._value


class Histogram:
    """Distribution of integer values over a reservoir sample"""

    kind = MetricKind.HISTOGRAM

    def __init__(self, sample: Optional[Reservoir] = None):
        self.sample = sample or UniformSample(1028)

    def update(self, value: int) -> None:
        self.sample.update(int(value))

    def clear(self) -> None:
        self.sample.clear()

    def count(self) -> int:
        return self.sample.count()

    def snapshot(self):
        return self.sample.snapshot()


class EWMA:
    """Exponentially-weighted moving average of a per-second rate"""

    def __init__(self, alpha: float):
        self.alpha = alpha
        self._uncounted = 0
        self._rate = 0.0
        self._initialized = False

    @classmethod
    def minutes(cls, n: int) -> "EWMA":
        return cls(1 - math.exp(-TICK_INTERVAL / 60.0 / n))

    def update(self, n: int) -> None:
        self._uncounted += n

    def tick(self) -> None:
        instant = self._uncounted / TICK_INTERVAL
        self._uncounted = 0
        if self._initialized:
            self._rate += self.alpha * (instant - self._rate)
        else:
            self._rate = instant
            self._initialized = True

    def rate(self) -> float:
        return self._rate


class Meter:
    """Event count with 1, 5 and 15 minute moving rates.

    Rates advance in whole ticks of TICK_INTERVAL seconds, caught up lazily on
    every mark and snapshot.
    """

    kind = MetricKind.METER

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._start = clock()
        self._last_tick = self._start
        self._m1 = EWMA.minutes(1)
        self._m5 = EWMA.minutes(5)
        self._m15 = EWMA.minutes(15)

    def mark(self, n: int = 1) -> None:
        with self._lock:
            self._tick_if_necessary()
            self._count += n
            self._m1.update(n)
            self._m5.update(n)
            self._m15.update(n)

    def count(self) -> int:
        with self._lock:
            return self._count

    def snapshot(self) -> MeterSnapshot:
        with self._lock:
            self._tick_if_necessary()
            elapsed = self._clock() - self._start
            rate_mean = self._count / elapsed if elapsed > 0 else 0.0
            return MeterSnapshot(
                count=self._count,
                rate1=self._m1.rate(),
                rate5=self._m5.rate(),
                rate15=self._m15.rate(),
                rate_mean=rate_mean,
            )

    def _tick_if_necessary(self) -> None:
        now = self._clock()
        ticks = int((now - self._last_tick) // TICK_INTERVAL)
        if ticks <= 0:
            return
        self._last_tick += ticks * TICK_INTERVAL
        for _ in range(ticks):
            self._m1.tick()
            self._m5.tick()
            self._m15.tick()


class Timer:
    """Durations in nanoseconds plus the rate at which they were recorded"""

    kind = MetricKind.TIMER

    def __init__(self, sample: Optional[Reservoir] = None, meter: Optional[Meter] = None):
        self.histogram = Histogram(sample or ExpDecaySample(1028, 0.015))
        self.meter = meter or Meter()

    def update(self, nanoseconds: int) -> None:
        self.histogram.update(nanoseconds)
        self.meter.mark(1)

    def update_since(self, start_ns: int) -> None:
        """Record the time elapsed since a time.perf_counter_ns() reading"""
        self.update(time.perf_counter_ns() - start_ns)

    @contextmanager
    def time(self) -> Iterator[None]:
        start = time.perf_counter_ns()
        try:
            yield
        finally:
            self.update_since(start)

    def count(self) -> int:
        return self.histogram.count()

    def snapshot(self) -> TimerSnapshot:
        hs = self.histogram.snapshot()
        ms = self.meter.snapshot()
        return TimerSnapshot(
            count=hs.count,
            min=hs.min,
            max=hs.max,
            mean=hs.mean,
            stddev=hs.stddev,
            variance=hs.variance,
            values=hs.values,
            rate1=ms.rate1,
            rate5=ms.rate5,
            rate15=ms.rate15,
            rate_mean=ms.rate_mean,
        )
