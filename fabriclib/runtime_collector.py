"""Collects interpreter runtime statistics and publishes them as gauges."""

from __future__ import annotations

import gc
import sys
import threading
from dataclasses import dataclass, field, fields
from typing import Iterable

from fabriclib import metrics


def _opts(name: str, subsystem: str = "mem") -> metrics.GaugeOpts:
    return metrics.GaugeOpts(namespace="go", subsystem=subsystem, name=name)


_GAUGE_OPTS: dict[str, metrics.GaugeOpts] = {
    "cgo_calls": _opts("cgo_calls", ""),
    "go_routines": _opts("goroutine_count", ""),
    "threads_created": _opts("threads_created", ""),
    "heap_alloc": _opts("heap_alloc_bytes"),
    "total_alloc": _opts("heap_total_alloc_bytes"),
    "mallocs": _opts("heap_malloc_count"),
    "frees": _opts("heap_free_count"),
    "heap_sys": _opts("heap_sys_bytes"),
    "heap_idle": _opts("heap_idle_bytes"),
    "heap_inuse": _opts("heap_inuse_bytes"),
    "heap_released": _opts("heap_released_bytes"),
    "heap_objects": _opts("heap_objects"),
    "stack_inuse": _opts("stack_inuse_bytes"),
    "stack_sys": _opts("stack_sys_bytes"),
    "mspan_inuse": _opts("mspan_inuse_bytes"),
    "mspan_sys": _opts("mspan_sys_bytes"),
    "mcache_inuse": _opts("mcache_inuse_bytes"),
    "mcache_sys": _opts("mcache_sys_bytes"),
    "buck_hash_sys": _opts("buckethash_sys_bytes"),
    "gc_sys": _opts("gc_sys_bytes"),
    "other_sys": _opts("other_sys_bytes"),
    "next_gc": _opts("gc_next_bytes"),
    "last_gc": _opts("gc_last_epoch_nanotime"),
    "pause_total_ns": _opts("gc_pause_total_ns"),
    "pause_ns": _opts("gc_pause_last_ns"),
    "num_gc": _opts("gc_completed_count"),
    "num_forced_gc": _opts("gc_forced_count"),
}

_TOP_LEVEL = ("cgo_calls", "go_routines", "threads_created")


@dataclass
class MemStats:
    """Memory allocator statistics."""

    heap_alloc: int = 0
    total_alloc: int = 0
    mallocs: int = 0
    frees: int = 0
    heap_sys: int = 0
    heap_idle: int = 0
    heap_inuse: int = 0
    heap_released: int = 0
    heap_objects: int = 0
    stack_inuse: int = 0
    stack_sys: int = 0
    mspan_inuse: int = 0
    mspan_sys: int = 0
    mcache_inuse: int = 0
    mcache_sys: int = 0
    buck_hash_sys: int = 0
    gc_sys: int = 0
    other_sys: int = 0
    next_gc: int = 0
    last_gc: int = 0
    pause_total_ns: int = 0
    pause_ns: list[int] = field(default_factory=lambda: [0] * 256)
    num_gc: int = 0
    num_forced_gc: int = 0


@dataclass
class Stats:
    """A snapshot of runtime statistics."""

    cgo_calls: int = 0
    go_routines: int = 0
    threads_created: int = 0
    mem_stats: MemStats = field(default_factory=MemStats)


class Collector:
    """Publishes :class:`Stats` snapshots to a fixed set of gauges."""

    def __init__(self, provider: metrics.Provider) -> None:
        self.gauges: dict[str, metrics.Gauge] = {
            key: provider.new_gauge(opts) for key, opts in _GAUGE_OPTS.items()
        }

    def collect_and_publish(self, ticks: Iterable[object]) -> None:
        """Collect and publish once for every tick until ``ticks`` is exhausted."""
        for _ in ticks:
            self.publish(collect_stats())

    def publish(self, stats: Stats) -> None:
        """Set every gauge from ``stats``."""
        mem = stats.mem_stats
        for key, gauge in self.gauges.items():
            if key in _TOP_LEVEL:
                value = getattr(stats, key)
            elif key == "pause_ns":
                value = mem.pause_ns[(mem.num_gc + 255) % 256]
            else:
                value = getattr(mem, key)
            gauge.set(float(value))


def collect_stats() -> Stats:
    """Take a snapshot of the interpreter's threads and garbage collector."""
    gc_stats = gc.get_stats()
    collections = sum(s.get("collections", 0) for s in gc_stats)
    objects = len(gc.get_objects())
    blocks = sys.getallocatedblocks()
    mem = MemStats(
        heap_objects=objects,
        mallocs=blocks,
        heap_alloc=blocks,
        num_gc=collections,
        next_gc=gc.get_threshold()[0],
    )
    active = threading.active_count()
    return Stats(go_routines=active, threads_created=active, mem_stats=mem)


__all_fields = [f.name for f in fields(MemStats)]