"""
Checks: async predicates over live page state.

A check is a callable ``(CheckContext) -> Awaitable[AssertOutcome]``. The
same check can be polled (AwaitCondition, readiness) or evaluated once
(Assert). Factories return checks:

    visible(target(".leaflet-container"))
    text_contains(target(".leaflet-popup-content"), "Mrvica")
    exchange_ok(StatusClass.parse("2xx"))
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .backends.protocol import BrowserBackend
from .models import (
    AssertOutcome,
    ElementState,
    NetworkExchange,
    PageResponse,
    StatusClass,
    Target,
)


@dataclass
class CheckContext:
    """Per-scenario state a check can look at."""

    backend: BrowserBackend
    base_url: str = ""
    last_response: PageResponse | None = None
    last_exchange: NetworkExchange | None = None
    located: dict[str, ElementState] = field(default_factory=dict)


Check = Callable[[CheckContext], Awaitable[AssertOutcome]]


def _named(check: Check, description: str) -> Check:
    check.description = description  # type: ignore[attr-defined]
    return check


def describe_check(check: Check) -> str:
    return getattr(check, "description", None) or getattr(check, "__name__", "check")


def _state_details(t: Target, state: ElementState) -> dict[str, Any]:
    return {
        "selector": t.describe(),
        "count": state.count,
        "visible": state.visible,
        "enabled": state.enabled,
        "text": state.text,
    }


def located_shows_text(name: str) -> Check:
    """
    Check the state a Locate step stored under ``name``: visible with
    non-empty text. Reads the snapshot only; the page is not queried again.
    """

    async def _check(ctx: CheckContext) -> AssertOutcome:
        state = ctx.located.get(name)
        if state is None:
            return AssertOutcome(
                passed=False,
                reason=f"nothing located as {name!r}",
                details={"name": name, "located": sorted(ctx.located)},
            )
        if not state.visible:
            reason = f"{name} is not visible"
        elif not (state.text or "").strip():
            reason = f"{name} has no text"
        else:
            reason = ""
        return AssertOutcome(
            passed=not reason,
            reason=reason,
            details={"name": name, "visible": state.visible, "text": state.text},
        )

    return _named(_check, f"located_shows_text({name})")


def visible(t: Target) -> Check:
    async def _check(ctx: CheckContext) -> AssertOutcome:
        state = await ctx.backend.inspect(t)
        if not state.attached:
            reason = f"no element matches {t.describe()}"
        elif not state.visible:
            reason = f"{t.describe()} is not visible"
        else:
            reason = ""
        return AssertOutcome(passed=not reason, reason=reason, details=_state_details(t, state))

    return _named(_check, f"visible({t.describe()})")


def hidden(t: Target) -> Check:
    async def _check(ctx: CheckContext) -> AssertOutcome:
        state = await ctx.backend.inspect(t)
        passed = not state.visible
        return AssertOutcome(
            passed=passed,
            reason="" if passed else f"{t.describe()} is visible",
            details=_state_details(t, state),
        )

    return _named(_check, f"hidden({t.describe()})")


def enabled(t: Target) -> Check:
    async def _check(ctx: CheckContext) -> AssertOutcome:
        state = await ctx.backend.inspect(t)
        if not state.attached:
            reason = f"no element matches {t.describe()}"
        elif not state.enabled:
            reason = f"{t.describe()} is not enabled"
        else:
            reason = ""
        return AssertOutcome(passed=not reason, reason=reason, details=_state_details(t, state))

    return _named(_check, f"enabled({t.describe()})")


def actionable(t: Target, *, require_enabled: bool = True) -> Check:
    """Readiness: attached, visible and (optionally) enabled."""

    async def _check(ctx: CheckContext) -> AssertOutcome:
        state = await ctx.backend.inspect(t)
        if not state.attached:
            reason = f"no element matches {t.describe()}"
        elif not state.visible:
            reason = f"{t.describe()} is not visible"
        elif require_enabled and not state.enabled:
            reason = f"{t.describe()} is not enabled"
        else:
            reason = ""
        return AssertOutcome(passed=not reason, reason=reason, details=_state_details(t, state))

    return _named(_check, f"actionable({t.describe()})")


def text_contains(t: Target, substring: str) -> Check:
    async def _check(ctx: CheckContext) -> AssertOutcome:
        state = await ctx.backend.inspect(t)
        text = state.text or ""
        passed = state.attached and substring in text
        details = _state_details(t, state)
        details["expected_substring"] = substring
        return AssertOutcome(
            passed=passed,
            reason="" if passed else f"{t.describe()} text {text!r} does not contain {substring!r}",
            details=details,
        )

    return _named(_check, f"text_contains({t.describe()}, {substring!r})")


def text_not_empty(t: Target) -> Check:
    async def _check(ctx: CheckContext) -> AssertOutcome:
        state = await ctx.backend.inspect(t)
        passed = state.attached and bool((state.text or "").strip())
        return AssertOutcome(
            passed=passed,
            reason="" if passed else f"{t.describe()} has no text",
            details=_state_details(t, state),
        )

    return _named(_check, f"text_not_empty({t.describe()})")


def attribute_matches(t: Target, name: str, pattern: str) -> Check:
    rx = re.compile(pattern)

    async def _check(ctx: CheckContext) -> AssertOutcome:
        state = await ctx.backend.inspect(t, attributes=(name,))
        value = state.attributes.get(name)
        passed = value is not None and rx.search(value) is not None
        details = _state_details(t, state)
        details.update({"attribute": name, "value": value, "pattern": pattern})
        return AssertOutcome(
            passed=passed,
            reason="" if passed else f"{t.describe()} [{name}]={value!r} does not match /{pattern}/",
            details=details,
        )

    return _named(_check, f"attribute_matches({t.describe()}, {name}, /{pattern}/)")


def all_have_class(t: Target, class_name: str, *, min_count: int = 1) -> Check:
    """Every element matching ``t`` carries ``class_name`` in its class list."""

    async def _check(ctx: CheckContext) -> AssertOutcome:
        states = await ctx.backend.inspect_all(t, attributes=("class",))
        offenders = [
            i
            for i, s in enumerate(states)
            if class_name not in (s.attributes.get("class") or "").split()
        ]
        details = {
            "selector": t.describe(),
            "count": len(states),
            "class_name": class_name,
            "offending_indices": offenders,
        }
        if len(states) < min_count:
            return AssertOutcome(
                passed=False,
                reason=f"expected at least {min_count} match(es) for {t.describe()}, got {len(states)}",
                details=details,
            )
        if offenders:
            return AssertOutcome(
                passed=False,
                reason=f"{len(offenders)} element(s) of {t.describe()} lack class {class_name!r}",
                details=details,
            )
        return AssertOutcome(passed=True, details=details)

    return _named(_check, f"all_have_class({t.describe()}, {class_name!r})")


def url_equals(expected: str) -> Check:
    async def _check(ctx: CheckContext) -> AssertOutcome:
        url = await ctx.backend.get_url()
        passed = url == expected
        return AssertOutcome(
            passed=passed,
            reason="" if passed else f"url {url!r} != {expected!r}",
            details={"url": url, "expected": expected},
        )

    return _named(_check, f"url_equals({expected!r})")


def url_matches(pattern: str) -> Check:
    rx = re.compile(pattern)

    async def _check(ctx: CheckContext) -> AssertOutcome:
        url = await ctx.backend.get_url()
        passed = rx.search(url) is not None
        return AssertOutcome(
            passed=passed,
            reason="" if passed else f"url {url!r} does not match /{pattern}/",
            details={"url": url, "pattern": pattern},
        )

    return _named(_check, f"url_matches(/{pattern}/)")


def response_status_in(status_class: StatusClass) -> Check:
    """The last navigation response's status is within ``status_class``."""

    async def _check(ctx: CheckContext) -> AssertOutcome:
        resp = ctx.last_response
        if resp is None:
            return AssertOutcome(passed=False, reason="no navigation response recorded")
        passed = status_class.contains(resp.status)
        return AssertOutcome(
            passed=passed,
            reason="" if passed else f"status {resp.status} not in {status_class}",
            details={"url": resp.url, "status": resp.status, "expected": str(status_class)},
        )

    return _named(_check, f"response_status_in({status_class})")


def exchange_ok(status_class: StatusClass | None = None) -> Check:
    """
    The last awaited network exchange succeeded.

    Without ``status_class`` the backend's own ``ok`` flag (2xx) is used.
    """

    async def _check(ctx: CheckContext) -> AssertOutcome:
        ex = ctx.last_exchange
        if ex is None:
            return AssertOutcome(passed=False, reason="no network exchange recorded")
        passed = ex.ok if status_class is None else status_class.contains(ex.status)
        return AssertOutcome(
            passed=passed,
            reason="" if passed else f"{ex.method} {ex.url} returned {ex.status}",
            details={
                "url": ex.url,
                "method": ex.method,
                "status": ex.status,
                "expected": str(status_class) if status_class is not None else "ok",
            },
        )

    return _named(_check, f"exchange_ok({status_class or 'ok'})")


def all_of(*checks: Check) -> Check:
    async def _check(ctx: CheckContext) -> AssertOutcome:
        results: list[dict[str, Any]] = []
        for check in checks:
            outcome = await check(ctx)
            results.append(outcome.model_dump())
            if not outcome.passed:
                return AssertOutcome(
                    passed=False, reason=outcome.reason, details={"checks": results}
                )
        return AssertOutcome(passed=True, details={"checks": results})

    return _named(_check, "all_of(" + ", ".join(describe_check(c) for c in checks) + ")")
