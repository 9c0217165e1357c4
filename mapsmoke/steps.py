"""
Scenario DSL.

A Scenario is an immutable, named sequence of Steps. Each Step carries a
Severity fixed when the scenario is defined: a REQUIRED failure aborts the
scenario, an OPTIONAL failure is recorded and the scenario continues.

Example:
    Scenario(
        id="TC002",
        title="Verify Map Display",
        steps=(
            Navigate(),
            AwaitCondition(visible(target(".leaflet-container")), timeout_s=5.0),
        ),
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .models import ActionKind, EnvironmentConfig, ExchangeMatcher, Severity, Target
from .verification import Check, describe_check

REQUIRED = Severity.REQUIRED
OPTIONAL = Severity.OPTIONAL


@dataclass(frozen=True)
class Step:
    severity: Severity = field(default=REQUIRED, kw_only=True)
    label: str | None = field(default=None, kw_only=True)

    def describe(self) -> str:
        return self.label or type(self).__name__


@dataclass(frozen=True)
class Navigate(Step):
    """Navigate to ``url``, resolved against the base URL (None = base URL)."""

    url: str | None = None

    def describe(self) -> str:
        return self.label or f"Navigate({self.url or '<base>'})"


@dataclass(frozen=True)
class Locate(Step):
    """
    Wait until ``target`` resolves to at least one element and remember its
    state under ``name`` (defaults to the selector).
    """

    target: Target
    name: str | None = None
    timeout_s: float | None = None

    def describe(self) -> str:
        return self.label or f"Locate({self.target.describe()})"


@dataclass(frozen=True)
class Act(Step):
    kind: ActionKind
    target: Target | None = None
    payload: Any = None
    timeout_s: float | None = None

    def describe(self) -> str:
        if self.label:
            return self.label
        where = f" {self.target.describe()}" if self.target is not None else ""
        return f"Act({self.kind.value}{where})"


@dataclass(frozen=True)
class Drag(Step):
    """Composite pointer gesture: Move, Down, Move(+dx, +dy), Up."""

    target: Target
    dx: float = 0.0
    dy: float = 0.0
    timeout_s: float | None = None

    def describe(self) -> str:
        return self.label or f"Drag({self.target.describe()} by {self.dx:g},{self.dy:g})"


@dataclass(frozen=True)
class AwaitCondition(Step):
    check: Check
    timeout_s: float | None = None
    poll_s: float | None = None

    def describe(self) -> str:
        return self.label or f"AwaitCondition({describe_check(self.check)})"


@dataclass(frozen=True)
class Assert(Step):
    """Evaluate ``check`` once; a false result is an AssertionFailed."""

    check: Check

    def describe(self) -> str:
        return self.label or f"Assert({describe_check(self.check)})"


@dataclass(frozen=True)
class ActAndAwaitExchange(Step):
    """
    Dispatch ``act`` and wait for the network exchange it triggers.

    The matched exchange becomes the context's ``last_exchange``.
    """

    act: Act
    matcher: ExchangeMatcher
    timeout_s: float | None = None

    def describe(self) -> str:
        if self.label:
            return self.label
        return (
            f"{self.act.describe()} + await {self.matcher.method} "
            f"*{self.matcher.url_contains}*"
        )


# Convenience constructors for the common actions.


def click(t: Target, **kwargs: Any) -> Act:
    return Act(ActionKind.CLICK, t, **kwargs)


def fill(t: Target, text: str, **kwargs: Any) -> Act:
    return Act(ActionKind.FILL, t, text, **kwargs)


def press(t: Target, key: str, **kwargs: Any) -> Act:
    return Act(ActionKind.PRESS_KEY, t, key, **kwargs)


@dataclass(frozen=True)
class Scenario:
    id: str
    title: str
    steps: tuple[Step, ...]
    environment: EnvironmentConfig | None = None
    timeout_s: float | None = None
    tags: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("scenario id must not be empty")
        if not isinstance(self.steps, tuple):
            # Freeze lists passed by callers.
            object.__setattr__(self, "steps", tuple(self.steps))
        if not self.steps:
            raise ValueError(f"scenario {self.id} has no steps")

    @property
    def name(self) -> str:
        return f"{self.id} - {self.title}" if self.title else self.id
