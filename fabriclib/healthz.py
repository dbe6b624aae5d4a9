"""Health checks for registered components, served as a JSON HTTP endpoint."""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Callable, Iterable

STATUS_OK = "OK"
STATUS_UNAVAILABLE = "Service Unavailable"
DEFAULT_TIMEOUT = 30.0


class AlreadyRegisteredError(ValueError):
    """A component with this name already has a checker."""

    def __init__(self, component: str) -> None:
        super().__init__(f"'{component}' is already registered")
        self.component = component


class HealthChecker(ABC):
    """A component that can report its health."""

    @abstractmethod
    def health_check(self, done: threading.Event) -> None:
        """Raise an exception if the component is unhealthy.

        ``done`` is set when the check has timed out and should give up.
        """


@dataclass(frozen=True)
class FailedCheck:
    """A failed check for one component."""

    component: str
    reason: str


def _format_time(moment: datetime) -> str:
    text = moment.isoformat()
    return text[:-6] + "Z" if text.endswith("+00:00") else text


@dataclass
class HealthStatus:
    """The health of all registered components at one moment."""

    status: str
    time: datetime
    failed_checks: list[FailedCheck] = field(default_factory=list)

    def to_json(self) -> str:
        """Serialise; ``failed_checks`` is left out when empty."""
        data: dict[str, object] = {"status": self.status, "time": _format_time(self.time)}
        if self.failed_checks:
            data["failed_checks"] = [
                {"component": fc.component, "reason": fc.reason} for fc in self.failed_checks
            ]
        return json.dumps(data, separators=(",", ":"))


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HealthHandler:
    """Runs registered health checks and serves their outcome over HTTP."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.timeout = timeout
        self.now = now
        self._lock = threading.RLock()
        self._checkers: dict[str, HealthChecker] = {}

    @property
    def health_checkers(self) -> dict[str, HealthChecker]:
        """A copy of the registered checkers by component name."""
        with self._lock:
            return dict(self._checkers)

    def register_checker(self, component: str, checker: HealthChecker) -> None:
        """Add a checker; raises AlreadyRegisteredError for a known component."""
        with self._lock:
            if component in self._checkers:
                raise AlreadyRegisteredError(component)
            self._checkers[component] = checker

    def deregister_checker(self, component: str) -> None:
        """Remove a checker; unknown components are ignored."""
        with self._lock:
            self._checkers.pop(component, None)

    def run_checks(self, done: threading.Event | None = None) -> list[FailedCheck]:
        """Run every checker and return the failures."""
        done = done if done is not None else threading.Event()
        failed: list[FailedCheck] = []
        with self._lock:
            for component, checker in self._checkers.items():
                try:
                    checker.health_check(done)
                except Exception as exc:  # any failure marks the component unhealthy
                    failed.append(FailedCheck(component, str(exc)))
        return failed

    def handle(self, method: str) -> tuple[int, dict[str, str], bytes]:
        """Answer one request: status code, headers and body."""
        if method != "GET":
            return HTTPStatus.METHOD_NOT_ALLOWED, {}, b""

        done = threading.Event()
        results: list[list[FailedCheck]] = []
        worker = threading.Thread(
            target=lambda: results.append(self.run_checks(done)), daemon=True
        )
        worker.start()
        worker.join(self.timeout)
        if not results:
            done.set()
            return HTTPStatus.REQUEST_TIMEOUT, {}, b""

        failed = results[0]
        status = HealthStatus(
            status=STATUS_UNAVAILABLE if failed else STATUS_OK,
            time=self.now(),
            failed_checks=failed,
        )
        code = HTTPStatus.SERVICE_UNAVAILABLE if failed else HTTPStatus.OK
        return code, {"Content-Type": "application/json"}, status.to_json().encode("utf-8")

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        """Serve as a WSGI application."""
        code, headers, body = self.handle(environ.get("REQUEST_METHOD", "GET"))
        status = HTTPStatus(code)
        header_list = list(headers.items()) + [("Content-Length", str(len(body)))]
        start_response(f"{status.value} {status.phrase}", header_list)
        return [body]