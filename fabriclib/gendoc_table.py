"""Renders reStructuredText reference tables for metrics options."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, TextIO

from fabriclib.metrics import CounterOpts, GaugeOpts, HistogramOpts
from fabriclib.namer import Namer, new_counter_namer, new_gauge_namer, new_histogram_namer

DEFAULT_STATSD_FORMAT = "%{#fqname}"


class Field(IntEnum):
    """A kind of data shown in the reference table."""

    NAME = 0
    TYPE = 1
    DESCRIPTION = 2
    LABELS = 3
    BUCKET = 4


@dataclass
class Column:
    """A column of the reference table; ``split`` divides a label subtable."""

    field: Field
    name: str
    split: int = 0
    width: int = 0


@dataclass
class Cell:
    """The documentation of one meter."""

    meter_type: str
    namer: Namer
    help_text: str = ""
    label_names: list[str] = dataclasses.field(default_factory=list)
    label_help: dict[str, str] = dataclasses.field(default_factory=dict)

    def field(self, f: Field) -> str:
        """Return the text shown for ``f``."""
        if f == Field.NAME:
            return self.name()
        if f == Field.TYPE:
            return self.type()
        if f == Field.DESCRIPTION:
            return self.description()
        if f == Field.LABELS:
            return self.labels()
        if f == Field.BUCKET:
            return self.bucket_format()
        raise ValueError(f"unknown field type: {f}")

    def name(self) -> str:
        return self.namer.fully_qualified_name().replace(".", "_")

    def type(self) -> str:
        return self.meter_type

    def description(self) -> str:
        return self.help_text

    def labels(self) -> str:
        return "".join(f" | {label}\n" for label in self.label_names).rstrip("\n")

    def bucket_format(self) -> str:
        args: list[str] = []
        for label in self.label_names:
            args.extend((label, "%{" + label + "}"))
        return self.namer.format(*args)


def _print_width(s: str, w: int, split: int) -> str:
    if len(s) >= w:
        return s
    if split <= len(s):
        return s + " " * (w - len(s))
    return s + " " * (split - len(s)) + "|" + " " * (w - split - 1)


def _pad_lines(lines: list[str], w: int, h: int, split: int) -> list[str]:
    padded = list(lines) + [""] * (h - len(lines))
    return [_print_width(line, w, split) for line in padded]


def _wrap_width(s: str, width: int) -> list[str]:
    words = s.split()
    if not words:
        return [s]
    lines = [words[0]]
    remaining = width - len(words[0])
    for word in words[1:]:
        if len(word) + 1 > remaining:
            lines.append(word)
            remaining = width - len(word) - 1
        else:
            lines[-1] += " " + word
            remaining -= len(word) + 1
    return lines


def _wrap_widths(s: str, width: int) -> list[str]:
    return [line for part in s.split("\n") for line in _wrap_width(part, width)]


def _form_subtable_cell(
    keys: list[str], help_map: dict[str, str], left_width: int, cell_width: int
) -> list[str]:
    result: list[str] = []
    for index, key in enumerate(keys):
        if index:
            result.append(
                "+" + "-" * left_width + "+" + "-" * (cell_width - left_width - 1) + "+"
            )
        right = _wrap_widths(help_map.get(key, ""), cell_width - left_width - 1)
        left = _pad_lines([key], left_width - 2, max(1, len(right)), 0)
        result.extend(f"{l} | {r}" for l, r in zip(left, right, strict=True))
    return result


@dataclass
class Table:
    """Columns and cells of a reference table."""

    columns: list[Column]
    cells: list[Cell]

    def generate(self, stream: TextIO) -> None:
        """Write the table in reStructuredText grid form to ``stream``."""
        stream.write(self._header())
        for cell in self.cells:
            stream.write(self._format_cell(cell))
            stream.write(self._separator("-", False))

    def _separator(self, delim: str, first_line: bool) -> str:
        parts = []
        for c in self.columns:
            if not first_line and c.split:
                parts.append("+" + delim * c.split + "+" + delim * (c.width - c.split - 1))
            else:
                parts.append("+" + delim * c.width)
        return "".join(parts) + "+\n"

    def _header(self) -> str:
        titles = "".join(f"| {_print_width(c.name, c.width - 2, 0)} " for c in self.columns)
        return self._separator("-", True) + titles + "|\n" + self._separator("=", False)

    def _format_cell(self, cell: Cell) -> str:
        contents: dict[Field, list[str]] = {}
        for c in self.columns:
            if c.split:
                contents[c.field] = _form_subtable_cell(
                    cell.label_names, cell.label_help, c.split, c.width
                )
            else:
                contents[c.field] = _wrap_widths(cell.field(c.field), c.width - 2)
        line_count = max((len(lines) for lines in contents.values()), default=0)
        for col in self.columns:
            contents[col.field] = _pad_lines(
                contents[col.field], col.width - 2, line_count, col.split - 1
            )

        rows = []
        for i in range(line_count):
            end_split, end_padding = "|", " "
            row = ""
            for col in self.columns:
                text = contents[col.field][i]
                front = "| "
                if text.startswith("+"):
                    front = end_split = end_padding = ""
                row += front + text + end_padding
            rows.append(row + end_split + "\n")
        return "".join(rows)


def max_len(cells: Iterable[Cell], field: Field) -> int:
    """Length of the longest text shown for ``field`` among ``cells``."""
    return max((len(cell.field(field)) for cell in cells), default=0)


def _with_default_format(opts):
    if opts.statsd_format:
        return opts
    return dataclasses.replace(opts, statsd_format=DEFAULT_STATSD_FORMAT)


def _cell(opts, meter_type: str, make_namer) -> Cell:
    opts = _with_default_format(opts)
    return Cell(
        meter_type=meter_type,
        namer=make_namer(opts),
        help_text=opts.help,
        label_names=list(opts.label_names),
        label_help=dict(opts.label_help),
    )


def new_cells(options: Iterable[object]) -> list[Cell]:
    """Turn metrics options into cells sorted by name."""
    cells = []
    for option in options:
        if isinstance(option, CounterOpts):
            cells.append(_cell(option, "counter", new_counter_namer))
        elif isinstance(option, GaugeOpts):
            cells.append(_cell(option, "gauge", new_gauge_namer))
        elif isinstance(option, HistogramOpts):
            cells.append(_cell(option, "histogram", new_histogram_namer))
        else:
            raise TypeError(f"unknown option type: {option!r}")
    cells.sort(key=Cell.name)
    return cells


def new_prometheus_table(cells: list[Cell]) -> Table:
    """A table documenting Prometheus metrics."""
    label_split = max(
        (len(label) + 2 for cell in cells for label in cell.label_names), default=0
    )
    return Table(
        columns=[
            Column(Field.NAME, "Name", width=max(max_len(cells, Field.NAME) + 2, 20)),
            Column(Field.TYPE, "Type", width=11),
            Column(Field.DESCRIPTION, "Description", width=60),
            Column(Field.LABELS, "Labels", width=80, split=label_split),
        ],
        cells=cells,
    )


def new_statsd_table(cells: list[Cell]) -> Table:
    """A table documenting statsd buckets."""
    return Table(
        columns=[
            Column(Field.BUCKET, "Bucket", width=max(max_len(cells, Field.BUCKET) + 2, 20)),
            Column(Field.TYPE, "Type", width=11),
            Column(Field.DESCRIPTION, "Description", width=60),
        ],
        cells=cells,
    )