"""Builds statsd bucket names from meter options and label values."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from fabriclib.metrics import CounterOpts, GaugeOpts, HistogramOpts

_FORMAT_RE = re.compile(r"%\{([#?A-Za-z0-9_]+)\}")
_INVALID_LABEL_VALUE_RE = re.compile(r"[.|:\t\n\f\r ]")


class LabelError(ValueError):
    """A label name or a format reference is not known to the namer."""


@dataclass(frozen=True)
class Namer:
    """Produces fully qualified and statsd-formatted meter names."""

    namespace: str = ""
    subsystem: str = ""
    name: str = ""
    name_format: str = ""
    label_names: frozenset[str] = field(default_factory=frozenset)

    def fully_qualified_name(self) -> str:
        """Join namespace, subsystem and name with dots, skipping empty parts."""
        parts = [p for p in (self.namespace, self.subsystem) if p]
        return ".".join([*parts, self.name])

    def _labels_to_map(self, args: tuple[str, ...]) -> dict[str, str]:
        labels = {}
        for i in range(0, len(args), 2):
            key = args[i]
            if key not in self.label_names:
                raise LabelError(f"invalid label name: {key}")
            labels[key] = args[i + 1] if i + 1 < len(args) else "unknown"
        return labels

    def format(self, *args: str) -> str:
        """Expand the name format with alternating label names and values.

        A trailing name without a value gets ``unknown``.  Dots, pipes,
        colons and whitespace in label values become underscores.
        """
        labels = self._labels_to_map(args)
        fixed = {
            "#namespace": self.namespace,
            "#subsystem": self.subsystem,
            "#name": self.name,
        }

        def expand(match: re.Match[str]) -> str:
            key = match.group(1)
            if key in fixed:
                return fixed[key]
            if key == "#fqname":
                return self.fully_qualified_name()
            try:
                value = labels[key]
            except KeyError:
                raise LabelError(f"invalid label in name format: {key}") from None
            return _INVALID_LABEL_VALUE_RE.sub("_", value)

        return _FORMAT_RE.sub(expand, self.name_format)


def _from_opts(opts: CounterOpts | GaugeOpts | HistogramOpts) -> Namer:
    return Namer(
        namespace=opts.namespace,
        subsystem=opts.subsystem,
        name=opts.name,
        name_format=opts.statsd_format,
        label_names=_to_set(opts.label_names),
    )


def _to_set(names: Iterable[str]) -> frozenset[str]:
    return frozenset(names)


def new_counter_namer(opts: CounterOpts) -> Namer:
    """Create a namer from counter options."""
    return _from_opts(opts)


def new_gauge_namer(opts: GaugeOpts) -> Namer:
    """Create a namer from gauge options."""
    return _from_opts(opts)


def new_histogram_namer(opts: HistogramOpts) -> Namer:
    """Create a namer from histogram options."""
    return _from_opts(opts)