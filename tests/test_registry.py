"""Tests for the metrics registry and metric types"""
import math
import random

import pytest

from metrics.models import MetricKind, percentile_of
from metrics.registry import DuplicateMetricError, MetricTypeError, MetricsRegistry
from metrics.sample import ExpDecaySample, UniformSample, summarize
from metrics.types import EWMA, Counter, Gauge, GaugeFloat64, Histogram, Meter, Timer


class TestMetricsRegistry:
    """Test registration and iteration"""

    def setup_method(self):
        """Setup test fixtures"""
        self.registry = MetricsRegistry()

    def test_each_visits_every_metric(self):
        """Test each calls back once per metric"""
        self.registry.counter("a")
        self.registry.gauge("b")
        self.registry.timer("c")

        seen = []
        self.registry.each(lambda name, metric: seen.append((name, metric.kind)))

        assert seen == [("a", MetricKind.COUNTER), ("b", MetricKind.GAUGE), ("c", MetricKind.TIMER)]

    def test_each_allows_mutation_during_iteration(self):
        """Test callbacks may unregister metrics"""
        self.registry.counter("a")
        self.registry.counter("b")

        self.registry.each(lambda name, metric: self.registry.unregister(name))

        assert len(self.registry) == 0

    def test_register_duplicate(self):
        """Test registering a name twice fails"""
        self.registry.register("foo", Counter())

        with pytest.raises(DuplicateMetricError):
            self.registry.register("foo", Counter())

    def test_register_rejects_non_metrics(self):
        """Test only known metric kinds can be registered"""
        with pytest.raises(ValueError):
            self.registry.register("foo", object())

    def test_get_or_create_returns_same_metric(self):
        """Test typed helpers return the existing metric"""
        c = self.registry.counter("foo")

        assert self.registry.counter("foo") is c
        assert self.registry.get("foo") is c

    def test_get_or_create_kind_mismatch(self):
        """Test typed helpers refuse a different kind under the same name"""
        self.registry.counter("foo")

        with pytest.raises(MetricTypeError):
            self.registry.gauge("foo")

    def test_unregister_all(self):
        """Test clearing the registry"""
        self.registry.meter("a")
        self.registry.histogram("b")

        self.registry.unregister_all()

        assert self.registry.names() == []

    def test_get_status(self):
        """Test status maps names to kinds"""
        self.registry.gauge_float64("load")
        self.registry.histogram("sizes")

        assert self.registry.get_status() == {"load": "gauge_float64", "sizes": "histogram"}


class TestSimpleMetrics:
    """Test counters and gauges"""

    def test_counter(self):
        """Test counter arithmetic"""
        c = Counter()
        c.inc()
        c.inc(5)
        c.dec(2)

        assert c.count() == 4

        c.clear()
        assert c.count() == 0

    def test_gauge_truncates_to_int(self):
        """Test integer gauges store integers"""
        g = Gauge()
        g.update(7.9)

        assert g.value() == 7

    def test_gauge_float64(self):
        """Test floating gauges"""
        g = GaugeFloat64()
        g.update(2.25)

        assert g.value() == 2.25


class TestSamples:
    """Test reservoir samples and statistics"""

    def test_uniform_sample_bounded(self):
        """Test the uniform reservoir never exceeds its size"""
        s = UniformSample(10, rng=random.Random(1))
        for i in range(1000):
            s.update(i)

        assert s.count() == 1000
        assert len(s.values()) == 10
        assert all(0 <= v < 1000 for v in s.values())

    def test_exp_decay_sample_bounded(self, fake_clock):
        """Test the decaying reservoir never exceeds its size"""
        s = ExpDecaySample(100, 0.99, clock=fake_clock, rng=random.Random(1))
        for i in range(1000):
            s.update(i)
            fake_clock.advance(0.01)

        assert s.count() == 1000
        assert len(s.values()) == 100

    def test_exp_decay_sample_prefers_recent_values(self, fake_clock):
        """Test newer values dominate the decaying reservoir"""
        s = ExpDecaySample(10, 0.5, clock=fake_clock, rng=random.Random(2))
        for i in range(100):
            s.update(i)
            fake_clock.advance(1.0)

        assert min(s.values()) >= 50

    def test_exp_decay_sample_rescale(self, fake_clock):
        """Test priorities stay finite across the hourly rescale"""
        s = ExpDecaySample(10, 0.015, clock=fake_clock, rng=random.Random(3))
        s.update(1)
        fake_clock.advance(2 * 60 * 60)
        s.update(2)

        assert sorted(s.values()) == [1, 2]
        assert all(math.isfinite(p) for p, _, _ in s._heap)

    def test_exp_decay_sample_large_alpha_within_the_hour(self, fake_clock):
        """Test a fast decay rate rescales before the priority overflows"""
        h = Histogram(ExpDecaySample(4, 1.0, clock=fake_clock, rng=random.Random(4)))
        h.update(1)
        fake_clock.advance(800)
        h.update(2)

        snapshot = h.snapshot()
        assert snapshot.count == 2
        assert set(h.sample.values()) <= {1, 2}
        assert all(math.isfinite(p) for p, _, _ in h.sample._heap)

    def test_clear(self):
        """Test clearing a sample"""
        s = UniformSample(4)
        s.update(1)
        s.clear()

        assert s.count() == 0
        assert s.values() == []

    def test_summarize(self):
        """Test snapshot statistics"""
        snap = summarize(2, [11, 1])

        assert snap.count == 2
        assert snap.min == 1
        assert snap.max == 11
        assert snap.mean == 6.0
        assert snap.variance == 25.0
        assert snap.stddev == 5.0

    def test_summarize_empty(self):
        """Test an empty sample summarizes to zeros"""
        snap = summarize(0, [])

        assert (snap.count, snap.min, snap.max, snap.mean, snap.stddev, snap.variance) == (0, 0, 0, 0.0, 0.0, 0.0)
        assert snap.percentiles([0.5, 0.99]) == [0.0, 0.0]

    def test_percentile_interpolation(self):
        """Test percentile positions and clamping"""
        values = [1, 2, 3, 4]

        assert percentile_of(values, 0.5) == 2.5
        assert percentile_of(values, 0.1) == 1.0
        assert percentile_of(values, 0.99) == 4.0
        assert percentile_of([11, 1], 0.5) == 6.0


class TestHistogram:
    """Test histograms"""

    def test_snapshot(self):
        """Test histogram snapshot"""
        h = Histogram(UniformSample(8))
        for v in [1, 2, 3, 4]:
            h.update(v)

        snap = h.snapshot()
        assert snap.count == 4
        assert snap.mean == 2.5
        assert snap.percentiles([0.5]) == [2.5]

    def test_default_sample(self):
        """Test histograms default to a uniform reservoir"""
        assert isinstance(Histogram().sample, UniformSample)


class TestMeter:
    """Test meters and moving averages"""

    def test_rates_before_first_tick(self, fake_clock):
        """Test rates stay at zero until the first tick"""
        m = Meter(clock=fake_clock)
        m.mark(10)
        fake_clock.advance(2.0)

        snap = m.snapshot()
        assert snap.count == 10
        assert snap.rate1 == 0.0
        assert snap.rate5 == 0.0
        assert snap.rate15 == 0.0
        assert snap.rate_mean == 5.0

    def test_rates_after_tick(self, fake_clock):
        """Test the first tick sets the instant rate"""
        m = Meter(clock=fake_clock)
        m.mark(10)
        fake_clock.advance(5.0)

        snap = m.snapshot()
        assert snap.rate1 == pytest.approx(2.0)
        assert snap.rate5 == pytest.approx(2.0)
        assert snap.rate15 == pytest.approx(2.0)

    def test_rates_decay(self, fake_clock):
        """Test rates decay while idle, the one minute rate fastest"""
        m = Meter(clock=fake_clock)
        m.mark(60)
        fake_clock.advance(5.0)
        m.snapshot()
        fake_clock.advance(60.0)

        snap = m.snapshot()
        assert snap.rate1 < snap.rate5 < snap.rate15 < 12.0

    def test_ewma_one_minute(self):
        """Test one minute EWMA decay after a minute idle"""
        e = EWMA.minutes(1)
        e.update(3)
        e.tick()
        assert e.rate() == pytest.approx(0.6)

        for _ in range(12):
            e.tick()
        assert e.rate() == pytest.approx(0.6 * math.exp(-1), rel=1e-6)


class TestTimer:
    """Test timers"""

    def test_update(self):
        """Test timer records durations and rates"""
        t = Timer()
        t.update(2_000_000)
        t.update(4_000_000)

        snap = t.snapshot()
        assert snap.count == 2
        assert snap.min == 2_000_000
        assert snap.max == 4_000_000
        assert snap.mean == 3_000_000
        assert t.meter.count() == 2

    def test_time_context_manager(self):
        """Test timing a block"""
        t = Timer()
        with t.time():
            pass

        snap = t.snapshot()
        assert snap.count == 1
        assert snap.max >= 0

    def test_default_sample(self):
        """Test timers default to a decaying reservoir"""
        assert isinstance(Timer().histogram.sample, ExpDecaySample)
