"""
Error taxonomy for the smoke harness.

Every harness error carries a short ``reason_code`` (stable, machine-readable)
plus optional ``details`` so outcomes can explain what was expected and what
was observed.
"""

from __future__ import annotations

import asyncio
from typing import Any, Literal

ErrorClass = Literal["fatal", "timeout", "transient"]


class HarnessError(RuntimeError):
    reason_code: str = "harness_error"

    def __init__(
        self,
        message: str,
        *,
        reason_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        if reason_code is not None:
            self.reason_code = reason_code
        self.details: dict[str, Any] = dict(details or {})

    @property
    def kind(self) -> str:
        return type(self).__name__


class TimeoutExceeded(HarnessError):
    """A condition was never satisfied within its budget."""

    reason_code = "timeout_exceeded"

    def __init__(
        self,
        message: str,
        *,
        last_observation: Any | None = None,
        timeout_s: float | None = None,
        reason_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, reason_code=reason_code, details=details)
        self.last_observation = last_observation
        self.timeout_s = timeout_s


class TargetNotFound(HarnessError):
    reason_code = "target_not_found"


class ActionRejected(HarnessError):
    reason_code = "action_rejected"


class FatalEnvironmentError(HarnessError):
    """Environment-level failure; the scenario cannot continue."""

    reason_code = "fatal_environment"


class AssertionFailed(HarnessError):
    reason_code = "assertion_failed"


# Playwright surfaces these as plain ``Error`` messages; match on text.
_FATAL_MARKERS = (
    "target page, context or browser has been closed",
    "target closed",
    "browser has been closed",
    "browser has disconnected",
    "page crashed",
    "navigation failed because page crashed",
    "net::err_aborted",
    "navigation aborted",
)

_TIMEOUT_MARKERS = ("timeout", "timed out")


def is_fatal_error(exc: BaseException) -> bool:
    if isinstance(exc, FatalEnvironmentError):
        return True
    msg = str(exc).lower()
    return any(marker in msg for marker in _FATAL_MARKERS)


def is_timeout_error(exc: BaseException) -> bool:
    """
    True for asyncio timeouts and Playwright's ``TimeoutError``.

    Playwright's TimeoutError does not subclass the builtin one, so the class
    name and message are checked too.
    """
    if isinstance(exc, (asyncio.TimeoutError, TimeoutExceeded)):
        return True
    if type(exc).__name__ == "TimeoutError":
        return True
    msg = str(exc).lower()
    return any(marker in msg for marker in _TIMEOUT_MARKERS)


def classify_error(exc: BaseException) -> ErrorClass:
    if is_fatal_error(exc):
        return "fatal"
    if is_timeout_error(exc):
        return "timeout"
    return "transient"


def as_fatal(exc: BaseException, *, context: str) -> FatalEnvironmentError:
    if isinstance(exc, FatalEnvironmentError):
        return exc
    return FatalEnvironmentError(
        f"{context}: {exc}",
        details={"error": str(exc), "error_type": type(exc).__name__},
    )
