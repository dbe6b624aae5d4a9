"""A Prometheus-style metrics provider with an in-process registry."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from fabriclib import metrics

DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

_INF_BOUND = 'le="+Inf"'


class LabelCardinalityError(ValueError):
    """Label values do not match the label names of a metric."""


def _format_value(value: float) -> str:
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if math.isnan(value):
        return "NaN"
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


@dataclass
class _Family:
    name: str
    help: str
    kind: str
    label_names: tuple[str, ...]
    buckets: tuple[float, ...] = ()
    children: dict[tuple[str, ...], object] = field(default_factory=dict)

    def child(self, lvs: tuple[str, ...]):
        labels: dict[str, str] = {}
        padded = list(lvs)
        if len(padded) % 2:
            padded.append("unknown")
        for key, value in zip(padded[::2], padded[1::2]):
            labels[key] = value
        if len(labels) != len(self.label_names):
            shown = ", ".join(f'"{k}":"{labels[k]}"' for k in sorted(labels))
            raise LabelCardinalityError(
                f"inconsistent label cardinality: expected {len(self.label_names)} "
                f"label values but got {len(labels)} in prometheus.Labels{{{shown}}}"
            )
        for name in self.label_names:
            if name not in labels:
                raise LabelCardinalityError(f'label name "{name}" missing in label map')
        key = tuple(labels[n] for n in self.label_names)
        if key not in self.children:
            if self.kind == "histogram":
                self.children[key] = [[0] * len(self.buckets), 0.0, 0]
            else:
                self.children[key] = [0.0]
        return self.children[key]

    def _labels(self, key: tuple[str, ...], extra: str = "") -> str:
        parts = [f'{n}="{_escape(v)}"' for n, v in zip(self.label_names, key)]
        if extra:
            parts.append(extra)
        return "{" + ",".join(parts) + "}" if parts else ""

    def lines(self) -> list[str]:
        out = [f"# HELP {self.name} {self.help}", f"# TYPE {self.name} {self.kind}"]
        for key in sorted(self.children):
            data = self.children[key]
            if self.kind != "histogram":
                out.append(f"{self.name}{self._labels(key)} {_format_value(data[0])}")
                continue
            counts, total, count = data
            cumulative = 0
            for bound, n in zip(self.buckets, counts):
                cumulative += n
                le = f'le="{_format_value(bound)}"'
                out.append(f"{self.name}_bucket{self._labels(key, le)} {cumulative}")
            out.append(f"{self.name}_bucket{self._labels(key, _INF_BOUND)} {count}")
            out.append(f"{self.name}_sum{self._labels(key)} {_format_value(total)}")
            out.append(f"{self.name}_count{self._labels(key)} {count}")
        return out


class Registry:
    """Holds metric families and renders them in the text exposition format."""

    def __init__(self) -> None:
        self._families: dict[str, _Family] = {}

    def register(self, family: _Family) -> None:
        if family.name in self._families:
            raise ValueError(f"duplicate metrics collector registration: {family.name}")
        self._families[family.name] = family

    def exposition(self) -> str:
        lines: list[str] = []
        for name in sorted(self._families):
            lines.extend(self._families[name].lines())
        return "".join(line + "\n" for line in lines)


DEFAULT_REGISTRY = Registry()


def _full_name(opts) -> str:
    return "_".join(p for p in (opts.namespace, opts.subsystem, opts.name) if p)


class Counter(metrics.Counter):
    """A Prometheus counter; label values accumulate through ``with_labels``."""

    def __init__(self, family: _Family, lvs: tuple[str, ...] = ()) -> None:
        self._family = family
        self._lvs = lvs

    def add(self, delta: float) -> None:
        if delta < 0:
            raise ValueError("counter cannot decrease in value")
        self._family.child(self._lvs)[0] += delta

    def with_labels(self, *args: str) -> Counter:
        return Counter(self._family, self._lvs + args)


class Gauge(metrics.Gauge):
    """A Prometheus gauge."""

    def __init__(self, family: _Family, lvs: tuple[str, ...] = ()) -> None:
        self._family = family
        self._lvs = lvs

    def add(self, delta: float) -> None:
        self._family.child(self._lvs)[0] += delta

    def set(self, value: float) -> None:
        self._family.child(self._lvs)[0] = value

    def with_labels(self, *args: str) -> Gauge:
        return Gauge(self._family, self._lvs + args)


class Histogram(metrics.Histogram):
    """A Prometheus histogram."""

    def __init__(self, family: _Family, lvs: tuple[str, ...] = ()) -> None:
        self._family = family
        self._lvs = lvs

    def observe(self, value: float) -> None:
        data = self._family.child(self._lvs)
        for i, bound in enumerate(self._family.buckets):
            if value <= bound:
                data[0][i] += 1
                break
        data[1] += value
        data[2] += 1

    def with_labels(self, *args: str) -> Histogram:
        return Histogram(self._family, self._lvs + args)


class Provider(metrics.Provider):
    """Creates meters registered in a :class:`Registry`."""

    def __init__(self, registry: Registry | None = None) -> None:
        self.registry = registry if registry is not None else DEFAULT_REGISTRY

    def _register(self, opts, kind: str, buckets: tuple[float, ...] = ()) -> _Family:
        family = _Family(_full_name(opts), opts.help, kind, tuple(opts.label_names), buckets)
        self.registry.register(family)
        return family

    def new_counter(self, opts: metrics.CounterOpts) -> Counter:
        return Counter(self._register(opts, "counter"))

    def new_gauge(self, opts: metrics.GaugeOpts) -> Gauge:
        return Gauge(self._register(opts, "gauge"))

    def new_histogram(self, opts: metrics.HistogramOpts) -> Histogram:
        buckets = tuple(float(b) for b in opts.buckets) or DEFAULT_BUCKETS
        if any(a >= b for a, b in zip(buckets, buckets[1:])):
            raise ValueError("histogram buckets must be in increasing order")
        return Histogram(self._register(opts, "histogram", buckets))