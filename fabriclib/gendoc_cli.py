"""Command that writes metrics reference documentation from a template."""

from __future__ import annotations

import argparse
import io
import re
import sys
from pathlib import Path
from typing import Callable, Iterable, Iterator, Sequence

from fabriclib.gendoc_options import options
from fabriclib.gendoc_table import Cell, Table, new_cells, new_prometheus_table, new_statsd_table

DEFAULT_TEMPLATE = "docs/source/metrics_reference.rst.tmpl"
DEFAULT_PATTERN = "./..."
TEMPLATE_NAME = "metrics_reference"

_ACTION_RE = re.compile(r"\{\{(-[ \t\r\n])?(.*?)([ \t\r\n]-)?\}\}", re.DOTALL)
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def _table_text(table: Table) -> str:
    buf = io.StringIO()
    table.generate(buf)
    return buf.getvalue()


def _evaluate(action: str, funcs: dict[str, Callable[[], str]]) -> str:
    if action.startswith("/*") and action.endswith("*/"):
        return ""
    if action in funcs:
        return funcs[action]()
    if _IDENT_RE.fullmatch(action):
        raise ValueError(f'template: {TEMPLATE_NAME}: function "{action}" not defined')
    raise ValueError(f"template: {TEMPLATE_NAME}: unsupported action: {action!r}")


def render(template_text: str, cells: list[Cell]) -> str:
    """Expand ``{{ PrometheusTable }}`` and ``{{ StatsdTable }}`` in a template.

    Trim markers (``{{-`` and ``-}}``) remove the whitespace next to an action.
    """
    funcs: dict[str, Callable[[], str]] = {
        "PrometheusTable": lambda: _table_text(new_prometheus_table(cells)),
        "StatsdTable": lambda: _table_text(new_statsd_table(cells)),
    }
    out: list[str] = []
    cursor = 0
    trim_next = False
    for match in _ACTION_RE.finditer(template_text):
        text = template_text[cursor : match.start()]
        if trim_next:
            text = text.lstrip()
        if match.group(1):
            text = text.rstrip()
        out.append(text)
        out.append(_evaluate(match.group(2).strip(), funcs))
        trim_next = bool(match.group(3))
        cursor = match.end()
    tail = template_text[cursor:]
    out.append(tail.lstrip() if trim_next else tail)
    return "".join(out)


def _skipped(relative: Path) -> bool:
    return any(
        part == "testdata" or part.startswith((".", "_")) for part in relative.parts[:-1]
    )


def _source_files(patterns: Iterable[str]) -> Iterator[Path]:
    """Yield the non-test Go files named by file, directory or ``dir/...`` patterns."""
    for pattern in patterns:
        recursive = pattern == "..." or pattern.endswith("/...")
        base = Path(pattern[:-3].rstrip("/") or ".") if recursive else Path(pattern)
        if not base.exists():
            raise FileNotFoundError(f"no such file or directory: {pattern}")
        if base.is_file():
            yield base
            continue
        found = base.rglob("*.go") if recursive else base.glob("*.go")
        for path in sorted(found):
            if path.name.endswith("_test.go") or not path.is_file():
                continue
            if recursive and _skipped(path.relative_to(base)):
                continue
            yield path


def main(argv: Sequence[str] | None = None) -> int:
    """Print the metrics reference built from the given Go sources."""
    parser = argparse.ArgumentParser(
        prog="gendoc",
        description="Discover metrics options and render reference documentation.",
    )
    parser.add_argument(
        "-template",
        "--template",
        dest="template",
        default=DEFAULT_TEMPLATE,
        help="The documentation template.",
    )
    parser.add_argument("patterns", nargs="*", help="Go files or directories; dir/... recurses.")
    args = parser.parse_args(argv)

    patterns = args.patterns or [DEFAULT_PATTERN]
    cells = new_cells(options(list(_source_files(patterns))))
    template_text = Path(args.template).read_text(encoding="utf-8")
    sys.stdout.write(render(template_text, cells))
    return 0