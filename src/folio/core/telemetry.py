"""Injected telemetry and usage-counter capabilities.

Crash reporting and usage counting belong to the surrounding
application.  Folio accepts them as collaborators and defaults to no-op
implementations, so nothing here imports a reporting SDK.

Example::

    class SentrySink:
        def capture_exception(self, error, **context):
            with sentry_sdk.new_scope() as scope:
                scope.set_context("folio", context)
                sentry_sdk.capture_exception(error)

        def add_breadcrumb(self, message, **data):
            sentry_sdk.add_breadcrumb(message=message, data=data)

    service = ContentService(records, gateway, telemetry=SentrySink())
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Protocol


class TelemetrySink(Protocol):
    """Crash-reporting sink."""

    def capture_exception(self, error: BaseException, **context: Any) -> None:
        ...

    def add_breadcrumb(self, message: str, **data: Any) -> None:
        ...


class UsageCounter(Protocol):
    """Named monotonic counters."""

    def increment(self, name: str, amount: int = 1) -> None:
        ...


class NullTelemetry:
    """Drops everything."""

    def capture_exception(self, error: BaseException, **context: Any) -> None:
        return None

    def add_breadcrumb(self, message: str, **data: Any) -> None:
        return None


class NullCounter:
    """Counts nothing."""

    def increment(self, name: str, amount: int = 1) -> None:
        return None


class InMemoryCounter:
    """Per-instance counters, handy for tests and single-process tools."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()

    def increment(self, name: str, amount: int = 1) -> None:
        self._counts[name] += amount

    def get(self, name: str) -> int:
        return self._counts[name]

    def snapshot(self) -> dict[str, int]:
        return dict(self._counts)
