"""Reservoir samples backing histograms and timers"""
import heapq
import math
import random
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Tuple

from .models import HistogramSnapshot


RESCALE_THRESHOLD = 60 * 60  # seconds
# Largest alpha * age used as a priority exponent; math.exp overflows near 709.
MAX_EXPONENT = 600.0


class Reservoir(ABC):
    """A bounded reservoir of observed values"""

    def __init__(self, reservoir_size: int):
        if reservoir_size < 1:
            raise ValueError("reservoir_size must be positive")
        self.reservoir_size = reservoir_size
        self._count = 0
        self._lock = threading.Lock()

    @abstractmethod
    def update(self, value: int) -> None:
        """Record a value"""
        pass

    @abstractmethod
    def values(self) -> List[int]:
        """Values currently retained by the reservoir"""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def count(self) -> int:
        """Number of values ever recorded, not just those retained"""
        with self._lock:
            return self._count

    def snapshot(self) -> HistogramSnapshot:
        with self._lock:
            count = self._count
            values = list(self._retained())
        return summarize(count, values)

    @abstractmethod
    def _retained(self) -> List[int]:
        pass


class UniformSample(Reservoir):
    """Uniform random sample using Vitter's algorithm R"""

    def __init__(self, reservoir_size: int = 1028, rng: random.Random = None):
        super().__init__(reservoir_size)
        self._values: List[int] = []
        self._rng = rng or random.Random()

    def update(self, value: int) -> None:
        with self._lock:
            self._count += 1
            if len(self._values) < self.reservoir_size:
                self._values.append(value)
                return
            r = self._rng.randrange(self._count)
            if r < self.reservoir_size:
                self._values[r] = value

    def values(self) -> List[int]:
        with self._lock:
            return list(self._values)

    def clear(self) -> None:
        with self._lock:
            self._count = 0
            self._values = []

    def _retained(self) -> List[int]:
        return self._values


class ExpDecaySample(Reservoir):
    """Exponentially-decaying sample biased towards recent values.

    Each value gets priority exp(alpha * age) / u with u uniform in (0, 1]; the
    reservoir keeps the highest priorities. Landmark time is moved forward once
    an hour, or sooner when alpha * age would overflow, so priorities stay
    finite.
    """

    def __init__(self, reservoir_size: int = 1028, alpha: float = 0.015,
                 clock: Callable[[], float] = time.monotonic, rng: random.Random = None):
        super().__init__(reservoir_size)
        self.alpha = alpha
        self._clock = clock
        self._rng = rng or random.Random()
        self._heap: List[Tuple[float, int, int]] = []
        self._seq = 0
        self._t0 = clock()
        self._t1 = self._t0 + RESCALE_THRESHOLD

    def update(self, value: int) -> None:
        now = self._clock()
        with self._lock:
            if now > self._t1 or self.alpha * (now - self._t0) > MAX_EXPONENT:
                self._rescale(now)
            self._count += 1
            self._seq += 1
            priority = math.exp(self.alpha * (now - self._t0)) / (1.0 - self._rng.random())
            entry = (priority, self._seq, value)
            if len(self._heap) < self.reservoir_size:
                heapq.heappush(self._heap, entry)
            elif priority > self._heap[0][0]:
                heapq.heapreplace(self._heap, entry)

    def _rescale(self, now: float) -> None:
        factor = math.exp(-self.alpha * (now - self._t0))
        self._heap = [(p * factor, seq, v) for p, seq, v in self._heap]
        heapq.heapify(self._heap)
        self._t0 = now
        self._t1 = now + RESCALE_THRESHOLD

    def values(self) -> List[int]:
        with self._lock:
            return self._retained()

    def clear(self) -> None:
        with self._lock:
            self._count = 0
            self._seq = 0
            self._heap = []
            self._t0 = self._clock()
            self._t1 = self._t0 + RESCALE_THRESHOLD

    def _retained(self) -> List[int]:
        return [v for _, _, v in self._heap]


def summarize(count: int, values: List[int]) -> HistogramSnapshot:
    """Build a snapshot; variance is the population variance of the values"""
    if not values:
        return HistogramSnapshot(count=count, min=0, max=0, mean=0.0, stddev=0.0, variance=0.0, values=[])

    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return HistogramSnapshot(
        count=count,
        min=min(values),
        max=max(values),
        mean=mean,
        stddev=math.sqrt(variance),
        variance=variance,
        values=sorted(values),
    )
