import io
import re

import pytest

from fabriclib.gendoc_table import (
    Field,
    max_len,
    new_cells,
    new_prometheus_table,
    new_statsd_table,
)
from fabriclib.metrics import CounterOpts, GaugeOpts, HistogramOpts

FORMAT = "%{#fqname}.%{label_one}.%{label_two}"
SHORT_HELP = "This is some help text"
LONG = " ".join(
    [
        SHORT_HELP + " that is more than a few words long.",
        "It really can be quite long.",
        "Really long.",
    ]
)
LABEL_ONE_HELP = ", ".join(
    [
        "This is a very long help message for label_one",
        "which could be really",
        "really long",
        "and it may never end...",
    ]
)


def fixture_options():
    return [
        CounterOpts(
            namespace="fixtures",
            name="counter",
            help=LONG,
            label_names=["label_one", "label_two", "missing_help"],
            label_help={
                "label_one": "this is a really cool label that is the first of many",
                "label_two": "short and sweet",
            },
            statsd_format=FORMAT,
        ),
        GaugeOpts(
            namespace="fixtures",
            name="gauge",
            help=LONG + " " + LONG,
            label_names=["label_one", "label_two"],
            statsd_format=FORMAT,
        ),
        HistogramOpts(
            namespace="fixtures",
            name="histogram",
            help=SHORT_HELP,
            label_names=["label_one", "label_two"],
            label_help={"label_one": LABEL_ONE_HELP},
            statsd_format=FORMAT,
        ),
        CounterOpts(
            namespace="namespace",
            subsystem="counter",
            name="name",
            help=SHORT_HELP,
            label_names=["label_one", "label_two"],
            statsd_format=FORMAT,
        ),
        GaugeOpts(
            namespace="namespace",
            subsystem="gauge",
            name="name",
            help=SHORT_HELP,
            label_names=["label_one", "label_two"],
            statsd_format=FORMAT,
        ),
        HistogramOpts(
            namespace="namespace",
            subsystem="histogram",
            name="name",
            help=SHORT_HELP,
            label_names=["label_one", "label_two"],
            statsd_format=FORMAT,
        ),
    ]


def _normalise(text):
    """Collapse runs of padding and rule characters so rows compare by content."""
    return [re.sub(r"([ =-])\1+", r"\1", line) for line in text.splitlines()]


def _segments(line):
    return [len(part) for part in line.strip("+").split("+")]


PROM_ROW_SEP = "+-+-+-+-+-+"
SUB_SEP = "| | | +-+-+"

EXPECTED_PROM = [
    "+-+-+-+-+",
    "| Name | Type | Description | Labels |",
    "+=+=+=+=+=+",
    "| fixtures_counter | counter | This is some help text that is more than a few words long. "
    "| label_one | this is a really cool label that is the first of many |",
    "| | | It really can be quite long. Really long. +-+-+",
    "| | | | label_two | short and sweet |",
    SUB_SEP,
    "| | | | missing_help | |",
    PROM_ROW_SEP,
    "| fixtures_gauge | gauge | This is some help text that is more than a few words long. | label_one | |",
    "| | | It really can be quite long. Really long. This is some +-+-+",
    "| | | help text that is more than a few words long. It really | label_two | |",
    "| | | can be quite long. Really long. | | |",
    PROM_ROW_SEP,
    "| fixtures_histogram | histogram | This is some help text "
    "| label_one | This is a very long help message for label_one, which could be |",
    "| | | | | really, really long, and it may never end... |",
    SUB_SEP,
    "| | | | label_two | |",
    PROM_ROW_SEP,
    "| namespace_counter_name | counter | This is some help text | label_one | |",
    SUB_SEP,
    "| | | | label_two | |",
    PROM_ROW_SEP,
    "| namespace_gauge_name | gauge | This is some help text | label_one | |",
    SUB_SEP,
    "| | | | label_two | |",
    PROM_ROW_SEP,
    "| namespace_histogram_name | histogram | This is some help text | label_one | |",
    SUB_SEP,
    "| | | | label_two | |",
    PROM_ROW_SEP,
]

STATSD_ROW_SEP = "+-+-+-+"

EXPECTED_STATSD = [
    STATSD_ROW_SEP,
    "| Bucket | Type | Description |",
    "+=+=+=+",
    "| fixtures.counter.%{label_one}.%{label_two} | counter "
    "| This is some help text that is more than a few words long. |",
    "| | | It really can be quite long. Really long. |",
    STATSD_ROW_SEP,
    "| fixtures.gauge.%{label_one}.%{label_two} | gauge "
    "| This is some help text that is more than a few words long. |",
    "| | | It really can be quite long. Really long. This is some |",
    "| | | help text that is more than a few words long. It really |",
    "| | | can be quite long. Really long. |",
    STATSD_ROW_SEP,
    "| fixtures.histogram.%{label_one}.%{label_two} | histogram | This is some help text |",
    STATSD_ROW_SEP,
    "| namespace.counter.name.%{label_one}.%{label_two} | counter | This is some help text |",
    STATSD_ROW_SEP,
    "| namespace.gauge.name.%{label_one}.%{label_two} | gauge | This is some help text |",
    STATSD_ROW_SEP,
    "| namespace.histogram.name.%{label_one}.%{label_two} | histogram | This is some help text |",
    STATSD_ROW_SEP,
]


def test_generates_prometheus_table():
    buf = io.StringIO()
    new_prometheus_table(new_cells(fixture_options())).generate(buf)
    text = buf.getvalue()
    assert text.endswith("+\n")
    lines = text.splitlines()
    assert len({len(line) for line in lines}) == 1
    assert _segments(lines[0]) == [26, 11, 60, 80]
    assert _segments(lines[2]) == [26, 11, 60, 14, 65]
    assert _segments(lines[-1]) == [26, 11, 60, 14, 65]
    assert _normalise(text) == EXPECTED_PROM


def test_generates_statsd_table():
    buf = io.StringIO()
    new_statsd_table(new_cells(fixture_options())).generate(buf)
    text = buf.getvalue()
    assert text.endswith("+\n")
    lines = text.splitlines()
    assert len({len(line) for line in lines}) == 1
    assert _segments(lines[0]) == [52, 11, 60]
    assert _segments(lines[2]) == [52, 11, 60]
    assert _normalise(text) == EXPECTED_STATSD


def test_cells_are_sorted_by_name():
    cells = new_cells(list(reversed(fixture_options())))
    assert [c.name() for c in cells] == [
        "fixtures_counter",
        "fixtures_gauge",
        "fixtures_histogram",
        "namespace_counter_name",
        "namespace_gauge_name",
        "namespace_histogram_name",
    ]


def test_cell_fields():
    (cell,) = new_cells([GaugeOpts(namespace="a", subsystem="b", name="c", help="h", label_names=["x", "y"])])
    assert cell.field(Field.NAME) == "a_b_c"
    assert cell.field(Field.TYPE) == "gauge"
    assert cell.field(Field.DESCRIPTION) == "h"
    assert cell.field(Field.LABELS) == " | x\n | y"
    assert cell.field(Field.BUCKET) == "a.b.c"


def test_cell_without_labels_has_empty_labels_text():
    (cell,) = new_cells([CounterOpts(name="solo")])
    assert cell.labels() == ""
    assert cell.bucket_format() == "solo"


def test_unknown_field_raises():
    (cell,) = new_cells([CounterOpts(name="solo")])
    with pytest.raises(ValueError):
        cell.field(99)


def test_unknown_option_type_raises():
    with pytest.raises(TypeError, match="unknown option type"):
        new_cells([object()])


def test_max_len():
    cells = new_cells(fixture_options())
    assert max_len(cells, Field.NAME) == len("namespace_histogram_name")
    assert max_len([], Field.NAME) == 0