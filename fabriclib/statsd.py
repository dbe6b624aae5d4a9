"""A statsd metrics provider backed by an in-memory statsd buffer."""

from __future__ import annotations

from typing import TextIO

from fabriclib import metrics
from fabriclib.namer import Namer, new_counter_namer, new_gauge_namer, new_histogram_namer

DEFAULT_FORMAT = "%{#fqname}"


class MissingLabelsError(RuntimeError):
    """A labelled meter was used without calling ``with_labels`` first."""

    def __init__(self) -> None:
        super().__init__("label values must be provided by calling With")


def _sampling(rate: float) -> str:
    return f"|@{rate:f}" if rate < 1.0 else ""


class Statsd:
    """Buffers statsd observations until they are written out."""

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix
        self._counters: dict[str, list[float]] = {}
        self._counter_rates: dict[str, float] = {}
        self._gauges: dict[str, float] = {}
        self._timings: dict[str, list[float]] = {}
        self._timing_rates: dict[str, float] = {}

    def new_counter(self, name: str, sample_rate: float) -> StatsdCounter:
        """Return a counter writing to the bucket ``name``."""
        self._counter_rates[name] = sample_rate
        return StatsdCounter(self, name)

    def new_gauge(self, name: str) -> StatsdGauge:
        """Return a gauge writing to the bucket ``name``."""
        return StatsdGauge(self, name)

    def new_timing(self, name: str, sample_rate: float) -> StatsdTiming:
        """Return a timing writing to the bucket ``name``."""
        self._timing_rates[name] = sample_rate
        return StatsdTiming(self, name)

    def write_to(self, stream: TextIO) -> int:
        """Write buffered observations in statsd line format and reset the buffer.

        Returns the number of characters written.
        """
        lines = []
        for name, values in self._counters.items():
            rate = self._counter_rates.get(name, 1.0)
            lines.append(f"{self.prefix}{name}:{sum(values):f}|c{_sampling(rate)}\n")
        for name, value in self._gauges.items():
            lines.append(f"{self.prefix}{name}:{value:f}|g\n")
        for name, values in self._timings.items():
            rate = self._timing_rates.get(name, 1.0)
            lines.extend(
                f"{self.prefix}{name}:{v:f}|ms{_sampling(rate)}\n" for v in values
            )
        self._counters.clear()
        self._gauges.clear()
        self._timings.clear()
        text = "".join(lines)
        stream.write(text)
        return len(text)


class StatsdCounter:
    """A statsd counter bucket."""

    def __init__(self, owner: Statsd, name: str) -> None:
        self._owner = owner
        self.name = name

    def add(self, delta: float) -> None:
        self._owner._counters.setdefault(self.name, []).append(delta)


class StatsdGauge:
    """A statsd gauge bucket."""

    def __init__(self, owner: Statsd, name: str) -> None:
        self._owner = owner
        self.name = name

    def add(self, delta: float) -> None:
        gauges = self._owner._gauges
        gauges[self.name] = gauges.get(self.name, 0.0) + delta

    def set(self, value: float) -> None:
        self._owner._gauges[self.name] = value


class StatsdTiming:
    """A statsd timing bucket."""

    def __init__(self, owner: Statsd, name: str) -> None:
        self._owner = owner
        self.name = name

    def observe(self, value: float) -> None:
        self._owner._timings.setdefault(self.name, []).append(value)


class Counter(metrics.Counter):
    """A counter whose labels become part of the statsd bucket name."""

    def __init__(
        self,
        counter: StatsdCounter | None = None,
        namer: Namer | None = None,
        statsd: Statsd | None = None,
    ) -> None:
        self.counter = counter
        self._namer = namer
        self._statsd = statsd

    def add(self, delta: float) -> None:
        if self.counter is None:
            raise MissingLabelsError()
        self.counter.add(delta)

    def with_labels(self, *args: str) -> Counter:
        name = self._namer.format(*args)
        return Counter(counter=self._statsd.new_counter(name, 1.0))


class Gauge(metrics.Gauge):
    """A gauge whose labels become part of the statsd bucket name."""

    def __init__(
        self,
        gauge: StatsdGauge | None = None,
        namer: Namer | None = None,
        statsd: Statsd | None = None,
    ) -> None:
        self.gauge = gauge
        self._namer = namer
        self._statsd = statsd

    def add(self, delta: float) -> None:
        if self.gauge is None:
            raise MissingLabelsError()
        self.gauge.add(delta)

    def set(self, value: float) -> None:
        if self.gauge is None:
            raise MissingLabelsError()
        self.gauge.set(value)

    def with_labels(self, *args: str) -> Gauge:
        name = self._namer.format(*args)
        return Gauge(gauge=self._statsd.new_gauge(name))


class Histogram(metrics.Histogram):
    """A histogram reported as statsd timings."""

    def __init__(
        self,
        timing: StatsdTiming | None = None,
        namer: Namer | None = None,
        statsd: Statsd | None = None,
    ) -> None:
        self.timing = timing
        self._namer = namer
        self._statsd = statsd

    def observe(self, value: float) -> None:
        if self.timing is None:
            raise MissingLabelsError()
        self.timing.observe(value)

    def with_labels(self, *args: str) -> Histogram:
        name = self._namer.format(*args)
        return Histogram(timing=self._statsd.new_timing(name, 1.0))


def _with_default_format(opts):
    if opts.statsd_format:
        return opts
    from dataclasses import replace

    return replace(opts, statsd_format=DEFAULT_FORMAT)


class Provider(metrics.Provider):
    """Creates meters that report into a :class:`Statsd` buffer."""

    def __init__(self, statsd: Statsd | None = None) -> None:
        self.statsd = statsd if statsd is not None else Statsd()

    def new_counter(self, opts: metrics.CounterOpts) -> Counter:
        opts = _with_default_format(opts)
        counter = Counter(namer=new_counter_namer(opts), statsd=self.statsd)
        if not opts.label_names:
            counter.counter = self.statsd.new_counter(counter._namer.format(), 1.0)
        return counter

    def new_gauge(self, opts: metrics.GaugeOpts) -> Gauge:
        opts = _with_default_format(opts)
        gauge = Gauge(namer=new_gauge_namer(opts), statsd=self.statsd)
        if not opts.label_names:
            gauge.gauge = self.statsd.new_gauge(gauge._namer.format())
        return gauge

    def new_histogram(self, opts: metrics.HistogramOpts) -> Histogram:
        opts = _with_default_format(opts)
        histogram = Histogram(namer=new_histogram_namer(opts), statsd=self.statsd)
        if not opts.label_names:
            histogram.timing = self.statsd.new_timing(histogram._namer.format(), 1.0)
        return histogram