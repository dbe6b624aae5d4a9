import io

import pytest

from fabriclib.gendoc_cli import main, render
from fabriclib.gendoc_options import file_options
from fabriclib.gendoc_table import new_cells, new_prometheus_table, new_statsd_table

FIXTURE = '''package testdata

import (
	"github.com/hyperledger/fabric-lib-go/common/metrics"
)

var (
	Counter = metrics.CounterOpts{
		Namespace:    "fixtures",
		Name:         "counter",
		Help:         "This is some help text",
		LabelNames:   []string{"label_one", "label_two"},
		StatsdFormat: "%{#fqname}.%{label_one}.%{label_two}",
	}
)
'''

NESTED = '''package nested

import "github.com/hyperledger/fabric-lib-go/common/metrics"

var Gauge = metrics.GaugeOpts{Namespace: "nested", Name: "gauge", Help: "A gauge"}
'''


def _table(table):
    buf = io.StringIO()
    table.generate(buf)
    return buf.getvalue()


@pytest.fixture
def cells():
    return new_cells(file_options(FIXTURE))


def test_render_expands_both_tables(cells):
    text = render("A\n{{ PrometheusTable }}\nB\n{{StatsdTable}}\nC", cells)
    expected = (
        "A\n"
        + _table(new_prometheus_table(cells))
        + "\nB\n"
        + _table(new_statsd_table(cells))
        + "\nC"
    )
    assert text == expected


def test_render_trim_markers(cells):
    text = render("x \n{{- StatsdTable -}}\n y", cells)
    assert text == "x" + _table(new_statsd_table(cells)) + "y"


def test_render_comment_is_dropped(cells):
    assert render("a{{/* note */}}b", cells) == "ab"


def test_render_unknown_function(cells):
    with pytest.raises(ValueError, match='function "Bogus" not defined'):
        render("{{ Bogus }}", cells)


def test_main_prints_rendered_template(tmp_path, capsys):
    pkg = tmp_path / "pkg"
    pkg.mkdir()
    (pkg / "metrics.go").write_text(FIXTURE)
    (pkg / "metrics_test.go").write_text(NESTED)
    template = tmp_path / "ref.tmpl"
    template.write_text("Prom\n{{ PrometheusTable }}")

    assert main(["-template", str(template), str(pkg)]) == 0
    out = capsys.readouterr().out
    cells = new_cells(file_options(FIXTURE))
    assert out == "Prom\n" + _table(new_prometheus_table(cells))
    assert "nested_gauge" not in out


def test_main_recursive_pattern(tmp_path, capsys):
    root = tmp_path / "root"
    (root / "sub").mkdir(parents=True)
    (root / "testdata").mkdir()
    (root / "metrics.go").write_text(FIXTURE)
    (root / "sub" / "nested.go").write_text(NESTED)
    (root / "testdata" / "skip.go").write_text(
        NESTED.replace("nested", "skipped")
    )
    template = tmp_path / "ref.tmpl"
    template.write_text("{{ StatsdTable }}")

    main(["--template", str(template), f"{root}/..."])
    out = capsys.readouterr().out
    assert "fixtures.counter.%{label_one}.%{label_two}" in out
    assert "nested.gauge" in out
    assert "skipped" not in out


def test_main_directory_is_not_recursive(tmp_path, capsys):
    root = tmp_path / "root"
    (root / "sub").mkdir(parents=True)
    (root / "metrics.go").write_text(FIXTURE)
    (root / "sub" / "nested.go").write_text(NESTED)
    template = tmp_path / "ref.tmpl"
    template.write_text("{{ StatsdTable }}")

    main(["-template", str(template), str(root)])
    out = capsys.readouterr().out
    assert "nested.gauge" not in out
    assert "fixtures.counter" in out


def test_main_missing_template(tmp_path):
    (tmp_path / "metrics.go").write_text(FIXTURE)
    with pytest.raises(FileNotFoundError):
        main(["-template", str(tmp_path / "absent.tmpl"), str(tmp_path)])


def test_main_missing_source(tmp_path):
    template = tmp_path / "ref.tmpl"
    template.write_text("{{ StatsdTable }}")
    with pytest.raises(FileNotFoundError):
        main(["-template", str(template), str(tmp_path / "nowhere")])