"""Metrics providers (StatsD, Prometheus-style, disabled), metric naming, runtime statistics, metrics reference generation and WSGI health checks."""

__version__ = "0.1.0"