"""
Pydantic models for the smoke harness: targets, observed element state,
network exchanges, environment configuration and run results.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Target(BaseModel):
    """
    A selector-addressed element, optionally scoped to another target.

    Mirrors Playwright locator chaining: ``within.locator(selector,
    has_text=...)`` then ``.nth(nth)``.
    """

    model_config = ConfigDict(frozen=True)

    selector: str
    has_text: str | None = None
    nth: int | None = None
    within: Target | None = None

    def first(self) -> Target:
        return self.model_copy(update={"nth": 0})

    def at(self, index: int) -> Target:
        return self.model_copy(update={"nth": index})

    def locate(self, selector: str, *, has_text: str | None = None) -> Target:
        return Target(selector=selector, has_text=has_text, within=self)

    def describe(self) -> str:
        parts = [self.selector]
        if self.has_text is not None:
            parts.append(f"has_text={self.has_text!r}")
        if self.nth is not None:
            parts.append(f"nth={self.nth}")
        text = " ".join(parts)
        if self.within is not None:
            return f"{self.within.describe()} >> {text}"
        return text


def target(selector: str, *, has_text: str | None = None, nth: int | None = None) -> Target:
    return Target(selector=selector, has_text=has_text, nth=nth)


class BBox(BaseModel):
    """Bounding box coordinates"""

    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


class Point(BaseModel):
    x: float = 0.0
    y: float = 0.0


class OptionChoice(BaseModel):
    """Which ``<option>`` to select; exactly one field must be set."""

    value: str | None = None
    label: str | None = None
    index: int | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> OptionChoice:
        chosen = [v for v in (self.value, self.label, self.index) if v is not None]
        if len(chosen) != 1:
            raise ValueError("OptionChoice needs exactly one of value, label or index")
        return self


class ElementState(BaseModel):
    """Observed state of a target at one point in time."""

    count: int = 0
    visible: bool = False
    enabled: bool = False
    text: str | None = None
    attributes: dict[str, str | None] = Field(default_factory=dict)

    @property
    def attached(self) -> bool:
        return self.count > 0


class PageResponse(BaseModel):
    url: str
    status: int
    ok: bool


class NetworkExchange(BaseModel):
    """A matched request/response pair."""

    url: str
    method: str
    status: int
    ok: bool


class ExchangeMatcher(BaseModel):
    model_config = ConfigDict(frozen=True)

    url_contains: str
    method: str = "GET"

    @field_validator("method")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()

    def matches(self, url: str, method: str) -> bool:
        return self.url_contains in url and method.upper() == self.method


class StatusClass(BaseModel):
    """An inclusive HTTP status range, e.g. ``StatusClass.parse("2xx")``."""

    model_config = ConfigDict(frozen=True)

    low: int
    high: int

    @classmethod
    def parse(cls, value: str | int) -> StatusClass:
        if isinstance(value, int):
            return cls(low=value, high=value)
        s = value.strip().lower()
        if len(s) == 3 and s[0].isdigit() and s[1:] == "xx":
            base = int(s[0]) * 100
            return cls(low=base, high=base + 99)
        if s.isdigit():
            return cls(low=int(s), high=int(s))
        raise ValueError(f"Unrecognised status class: {value!r}")

    def contains(self, status: int) -> bool:
        return self.low <= status <= self.high

    def __str__(self) -> str:
        if self.low == self.high:
            return str(self.low)
        return f"{self.low}-{self.high}"


class Viewport(BaseModel):
    """Viewport dimensions"""

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class Geolocation(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: float | None = Field(None, ge=0)


class EnvironmentConfig(BaseModel):
    """
    Options for one isolated browsing context.

    Only the recognised options are accepted; anything else is a
    configuration error.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    viewport: Viewport | None = None
    user_agent: str | None = None
    locale: str | None = None
    permissions: tuple[str, ...] = ()
    geolocation: Geolocation | None = None

    def merged(self, override: EnvironmentConfig | None) -> EnvironmentConfig:
        """Layer ``override``'s explicitly-set fields over this config."""
        if override is None:
            return self
        updates = {name: getattr(override, name) for name in override.model_fields_set}
        return self.model_copy(update=updates)

    def to_context_options(self) -> dict[str, Any]:
        """Keyword arguments for Playwright's ``browser.new_context``."""
        opts: dict[str, Any] = {}
        if self.viewport is not None:
            opts["viewport"] = self.viewport.model_dump()
        if self.user_agent is not None:
            opts["user_agent"] = self.user_agent
        if self.locale is not None:
            opts["locale"] = self.locale
        if self.permissions:
            opts["permissions"] = list(self.permissions)
        if self.geolocation is not None:
            opts["geolocation"] = self.geolocation.model_dump(exclude_none=True)
        return opts


class ActionKind(str, Enum):
    NAVIGATE = "navigate"
    CLICK = "click"
    FILL = "fill"
    PRESS_KEY = "press_key"
    POINTER_MOVE = "pointer_move"
    POINTER_DOWN = "pointer_down"
    POINTER_UP = "pointer_up"
    SELECT_OPTION = "select_option"


class ActionResult(BaseModel):
    """Result of an action (navigate, click, fill, ...)"""

    kind: ActionKind
    success: bool
    duration_ms: int
    target: str | None = None
    url: str | None = None
    response: PageResponse | None = None
    exchange: NetworkExchange | None = None
    selected: list[str] | None = None


class AssertOutcome(BaseModel):
    """One evaluation of a check: the observation a poll or assertion sees."""

    passed: bool
    reason: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


class Severity(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"


class OutcomeStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


class StepFailure(BaseModel):
    step_index: int
    step: str
    severity: Severity
    error_kind: str
    reason_code: str
    message: str
    observed: dict[str, Any] | None = None


class StepRecord(BaseModel):
    step_index: int
    step: str
    severity: Severity
    status: Literal["passed", "failed", "skipped"]
    duration_ms: int = 0


class Outcome(BaseModel):
    scenario_id: str
    title: str = ""
    status: OutcomeStatus
    reason: str | None = None
    failed_step: StepFailure | None = None
    optional_failures: list[StepFailure] = Field(default_factory=list)
    steps: list[StepRecord] = Field(default_factory=list)
    duration_ms: int = 0
    environment_id: str | None = None
    artifacts_dir: str | None = None


class Report(BaseModel):
    total: int
    counts: dict[str, int]
    outcomes: list[Outcome]
    duration_ms: int = 0

    @property
    def failed(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.FAILED]

    @property
    def ok(self) -> bool:
        return self.counts.get(OutcomeStatus.FAILED.value, 0) == 0
