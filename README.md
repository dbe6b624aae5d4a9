# fabriclib

A small, dependency-free toolkit for instrumenting services:

- **Meter definitions** (`fabriclib.metrics`): `CounterOpts`, `GaugeOpts` and
  `HistogramOpts` describe a meter by namespace, subsystem, name, help text, label
  names, label help and a StatsD bucket format. `Counter`, `Gauge`, `Histogram` and
  `Provider` are the abstract interfaces every provider implements.
- **Providers**, which are interchangeable factories for counters, gauges and histograms:
  - `fabriclib.statsd.Provider` records into an in-memory `Statsd` buffer,
  - `fabriclib.promprovider.Provider` keeps Prometheus-style metric families in a
    `Registry` that renders the text exposition format,
  - `fabriclib.disabled.Provider` hands out meters that record nothing.
- **Naming** (`fabriclib.namer`): `Namer` expands a StatsD format such as
  `%{#namespace}.%{#subsystem}.%{#name}.%{alpha}` into a bucket name.
- **Runtime statistics** (`fabriclib.runtime_collector`): `Collector` publishes
  process statistics to a fixed set of gauges.
- **Reference documentation** (`fabriclib.gendoc_options`, `fabriclib.gendoc_table`,
  `fabriclib.gendoc_cli`): builds reStructuredText tables of every meter declared in
  Go source files, plus the `fabriclib-gendoc` command.
- **Health checks** (`fabriclib.healthz`): `HealthHandler` runs registered checks and
  answers as a WSGI application with a JSON body.

## Installation

```
pip install fabriclib
```

Python 3.10 or later is required. There are no third-party dependencies. The tests
use pytest (`pip install fabriclib[test]`).

## Metrics

Declare a meter once and create it from whichever provider is in use:

```python
import io

from fabriclib.metrics import CounterOpts
from fabriclib.statsd import Provider, Statsd

requests_total = CounterOpts(
    namespace="shop",
    subsystem="http",
    name="requests",
    help="Number of HTTP requests served.",
    label_names=["method", "code"],
    statsd_format="%{#fqname}.%{method}.%{code}",
)

statsd = Statsd()
provider = Provider(statsd)

counter = provider.new_counter(requests_total)
counter.with_labels("method", "GET", "code", "200").add(1)

out = io.StringIO()
statsd.write_to(out)
print(out.getvalue())   # shop.http.requests.GET.200:1.000000|c
```

### Labels and bucket names

Label values are passed to `with_labels` as alternating name/value arguments.
For StatsD names, `Namer.format`:

- replaces `%{#namespace}`, `%{#subsystem}`, `%{#name}` and `%{#fqname}` (the
  non-empty parts joined with dots) and `%{label}` with the label's value,
- records a final label name that has no value as `unknown`,
- replaces `.`, `|`, `:` and whitespace in label values with `_`,
- raises `fabriclib.namer.LabelError` for a label name that was not declared, or for
  a format reference to an unknown label.

`new_counter_namer`, `new_gauge_namer` and `new_histogram_namer` build a `Namer`
from the matching options.

### StatsD provider

`fabriclib.statsd.Provider(statsd=None)` creates its own `Statsd` when none is given.
When an options object has no `statsd_format`, `%{#fqname}` is used. Meters declared
without labels can be used directly; meters declared with labels raise
`MissingLabelsError` until `with_labels` is called.

`Statsd.write_to(stream)` writes everything buffered since the last call, one line
per bucket in the form `name:value|c` (counters, summed), `name:value|g` (gauges,
last value) and `name:value|ms` (one line per timing), then clears the buffer and
returns the number of characters written.

### Prometheus-style provider

`fabriclib.promprovider.Provider(registry=None)` registers each new meter in the
given `Registry`, or in the module-wide `DEFAULT_REGISTRY` when none is given.
Registering two meters with the same full name (namespace, subsystem and name joined
with `_`) raises `ValueError`.

```python
from fabriclib.metrics import HistogramOpts
from fabriclib.promprovider import Provider, Registry

registry = Registry()
provider = Provider(registry)
latency = provider.new_histogram(
    HistogramOpts(namespace="shop", name="latency_seconds", help="Request latency.",
                  label_names=["route"], buckets=[0.1, 1, 5])
)
latency.with_labels("route", "/cart").observe(0.4)
print(registry.exposition())
```

Histograms without `buckets` use the default bounds
`0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10`; bounds must be
increasing. A final label name without a value gets `unknown`, and a number of label
values that does not match the declared labels raises `LabelCardinalityError`, as
does using a labelled meter without `with_labels`. Counters refuse negative
increments with `ValueError`.

### Disabled provider

`fabriclib.disabled.Provider` hands out meters that accept every call and record
nothing, which suits tests or switching metrics off.

## Runtime statistics

```python
from fabriclib.disabled import Provider
from fabriclib.runtime_collector import Collector, collect_stats

collector = Collector(Provider())
collector.publish(collect_stats())
collector.collect_and_publish(range(3))   # collects and publishes once per item
```

`Collector` creates 27 gauges under the `go` namespace (for example
`go.goroutine_count` and `go.mem.heap_objects`), and `publish` sets each of them from
a `Stats` snapshot with its `MemStats`. `collect_stats()` fills in only what the
interpreter reports: the active thread count, the number of tracked objects, the
number of allocated memory blocks, the number of garbage collections and the first
collection threshold. All other fields stay at zero.

## Health checks

Implement `HealthChecker.health_check(done)` and raise an exception to report a
failure. `done` is a `threading.Event` that is set when the check has timed out.
Register the checker under a component name:

```python
from wsgiref.simple_server import make_server

from fabriclib.healthz import HealthChecker, HealthHandler


class DiskCheck(HealthChecker):
    def health_check(self, done):
        import shutil
        if shutil.disk_usage("/").free < 1_000_000:
            raise RuntimeError("disk almost full")


handler = HealthHandler()
handler.register_checker("disk", DiskCheck())

make_server("localhost", 9443, handler).serve_forever()
```

- `GET` answers `200 OK` with `{"status":"OK","time":...}`, or
  `503 Service Unavailable` with `"status":"Service Unavailable"` and a
  `failed_checks` list of `{"component", "reason"}` objects.
- Any other method gets `405 Method Not Allowed`.
- Checks still running after `timeout` seconds (30 by default) give
  `408 Request Timeout`.
- `register_checker` raises `AlreadyRegisteredError` for a known component;
  `deregister_checker` ignores unknown names; `health_checkers` returns a copy of the
  registered checkers.
- `run_checks()` returns the `FailedCheck` list directly, and `handle(method)` returns
  the status code, headers and body without going through WSGI.
- `HealthHandler(timeout=..., now=...)` sets the timeout and the clock used for the
  `time` field.

## Generating the metrics reference

`fabriclib.gendoc_options.file_options(source)` finds `CounterOpts`, `GaugeOpts` and
`HistogramOpts` composite literals in the `var` and `const` declarations of Go source
text, and recreates them as the matching options objects. The package qualifier must
be an import of the metrics package, including a renamed import. Files containing a
`//gendoc:ignore` comment yield nothing. Unknown option types or fields raise
`OptionsError`. `options(sources)` does the same for many files: a `str` is taken as
source text, a path object is read from disk.

`fabriclib.gendoc_table.new_cells(options)` turns options into `Cell`s sorted by
name. `new_prometheus_table(cells)` and `new_statsd_table(cells)` build `Table`s, and
`Table.generate(stream)` writes them as reStructuredText grid tables.

The `fabriclib-gendoc` command does all of this and fills the tables into a template,
writing the result to standard output:

```
fabriclib-gendoc --template metrics_reference.rst.tmpl path/to/pkg/... > metrics_reference.rst
```

- Arguments are Go files, directories, or `dir/...` to search a tree recursively.
  `_test.go` files are skipped, and so are `testdata`, `.`- and `_`-prefixed
  directories in recursive searches. Without arguments, `./...` is used.
- The template defaults to `docs/source/metrics_reference.rst.tmpl`. It may contain
  `{{ PrometheusTable }}`, `{{ StatsdTable }}`, `{{/* comments */}}` and the
  `{{-` / `-}}` trim markers. Any other action is an error.
- `fabriclib.gendoc_cli.render(template_text, cells)` performs the template expansion
  from Python.

## What this package does not do

- The StatsD provider only buffers lines. It does not send them over UDP or any other
  transport, so call `Statsd.write_to` with a stream of your choice.
- The Prometheus-style registry renders text through `Registry.exposition()`, but it
  does not serve a `/metrics` endpoint by itself.
- `HealthHandler` is a WSGI application and comes with no server of its own.
- The reference generator reads Go source files only. It does not load packages by
  import path.