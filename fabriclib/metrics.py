"""Meter option types and the abstract interfaces every metrics provider implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class CounterOpts:
    """Describes a counter to a metrics provider.

    ``namespace``, ``subsystem`` and ``name`` make up the fully qualified
    name; only ``name`` is required.  ``statsd_format`` builds the statsd
    bucket name from ``%{reference}`` escapes: ``#namespace``,
    ``#subsystem``, ``#name``, ``#fqname`` or a label name.
    """

    namespace: str = ""
    subsystem: str = ""
    name: str = ""
    help: str = ""
    label_names: list[str] = field(default_factory=list)
    label_help: dict[str, str] = field(default_factory=dict)
    statsd_format: str = ""


@dataclass
class GaugeOpts:
    """Describes a gauge to a metrics provider."""

    namespace: str = ""
    subsystem: str = ""
    name: str = ""
    help: str = ""
    label_names: list[str] = field(default_factory=list)
    label_help: dict[str, str] = field(default_factory=dict)
    statsd_format: str = ""


@dataclass
class HistogramOpts:
    """Describes a histogram to a metrics provider.

    An empty ``buckets`` list means the provider's default bucket bounds.
    """

    namespace: str = ""
    subsystem: str = ""
    name: str = ""
    help: str = ""
    buckets: list[float] = field(default_factory=list)
    label_names: list[str] = field(default_factory=list)
    label_help: dict[str, str] = field(default_factory=dict)
    statsd_format: str = ""


class Counter(ABC):
    """A monotonically increasing value."""

    @abstractmethod
    def with_labels(self, *args: str) -> Counter:
        """Return a counter bound to alternating label names and values."""

    @abstractmethod
    def add(self, delta: float) -> None:
        """Increment the counter by ``delta``."""


class Gauge(ABC):
    """The current value of some quantity."""

    @abstractmethod
    def with_labels(self, *args: str) -> Gauge:
        """Return a gauge bound to alternating label names and values."""

    @abstractmethod
    def add(self, delta: float) -> None:
        """Change the gauge by ``delta``."""

    @abstractmethod
    def set(self, value: float) -> None:
        """Set the gauge to ``value``."""


class Histogram(ABC):
    """Records observations into quantised buckets."""

    @abstractmethod
    def with_labels(self, *args: str) -> Histogram:
        """Return a histogram bound to alternating label names and values."""

    @abstractmethod
    def observe(self, value: float) -> None:
        """Record one observation."""


class Provider(ABC):
    """A factory for counters, gauges and histograms."""

    @abstractmethod
    def new_counter(self, opts: CounterOpts) -> Counter:
        """Create a counter described by ``opts``."""

    @abstractmethod
    def new_gauge(self, opts: GaugeOpts) -> Gauge:
        """Create a gauge described by ``opts``."""

    @abstractmethod
    def new_histogram(self, opts: HistogramOpts) -> Histogram:
        """Create a histogram described by ``opts``."""