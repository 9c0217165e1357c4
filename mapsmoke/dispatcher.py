"""
Action dispatcher.

Issues one remote action against a TestEnvironment and resolves once the
action has been applied. Targeted actions first wait (via the ConditionPoller)
for the target to become actionable, then dispatch exactly once: a target that
disappears between the readiness check and the dispatch surfaces as
ActionRejected instead of being retried.
"""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import urljoin

from .environment import TestEnvironment
from .errors import (
    ActionRejected,
    FatalEnvironmentError,
    HarnessError,
    TargetNotFound,
    TimeoutExceeded,
    as_fatal,
    classify_error,
)
from .models import (
    ActionKind,
    ActionResult,
    ExchangeMatcher,
    NetworkExchange,
    OptionChoice,
    Point,
    Target,
)
from .poller import ConditionPoller
from .verification import CheckContext, actionable

logger = logging.getLogger(__name__)

TARGETED = {
    ActionKind.CLICK,
    ActionKind.FILL,
    ActionKind.PRESS_KEY,
    ActionKind.SELECT_OPTION,
}

# Kinds whose readiness also needs the element to be enabled.
NEEDS_ENABLED = {ActionKind.CLICK, ActionKind.FILL, ActionKind.SELECT_OPTION}


class ActionDispatcher:
    def __init__(
        self,
        poller: ConditionPoller,
        *,
        base_url: str = "",
        action_timeout_s: float = 5.0,
        navigation_timeout_s: float = 30.0,
    ) -> None:
        self.poller = poller
        self.base_url = base_url
        self.action_timeout_s = action_timeout_s
        self.navigation_timeout_s = navigation_timeout_s

    def resolve_url(self, url: str | None) -> str:
        if not url:
            return self.base_url
        return urljoin(self.base_url, url) if self.base_url else url

    async def perform(
        self,
        environment: TestEnvironment,
        kind: ActionKind,
        target: Target | None = None,
        payload: Any = None,
        *,
        timeout_s: float | None = None,
    ) -> ActionResult:
        """
        Perform a single action.

        Args:
            environment: Environment to act in
            kind: Action kind
            target: Element to act on (required for click/fill/press/select)
            payload: Kind-specific payload: URL for NAVIGATE, text for FILL,
                key for PRESS_KEY, OptionChoice for SELECT_OPTION, Point for
                POINTER_MOVE (absolute, or offset from the target's centre)
            timeout_s: Readiness budget (defaults to action_timeout_s)
        """
        async with environment.action_lock:
            return await self._perform_unlocked(environment, kind, target, payload, timeout_s)

    async def drag(
        self,
        environment: TestEnvironment,
        target: Target,
        dx: float,
        dy: float,
        *,
        timeout_s: float | None = None,
    ) -> list[ActionResult]:
        """
        Drag from the centre of ``target`` by (dx, dy).

        Move, Down, Move, Up run under the environment's action lock so no
        other action can interleave.
        """
        async with environment.action_lock:
            results = [
                await self._perform_unlocked(
                    environment, ActionKind.POINTER_MOVE, target, Point(), timeout_s
                )
            ]
            results.append(
                await self._perform_unlocked(
                    environment, ActionKind.POINTER_DOWN, None, None, timeout_s
                )
            )
            results.append(
                await self._perform_unlocked(
                    environment, ActionKind.POINTER_MOVE, target, Point(x=dx, y=dy), timeout_s
                )
            )
            results.append(
                await self._perform_unlocked(
                    environment, ActionKind.POINTER_UP, None, None, timeout_s
                )
            )
            return results

    async def perform_and_await_exchange(
        self,
        environment: TestEnvironment,
        kind: ActionKind,
        target: Target | None,
        payload: Any,
        matcher: ExchangeMatcher,
        *,
        timeout_s: float | None = None,
        exchange_timeout_s: float | None = None,
    ) -> ActionResult:
        """
        Dispatch an action and wait for the network exchange it triggers.

        The response listener is registered before the action fires.
        """
        budget = exchange_timeout_s if exchange_timeout_s is not None else self.action_timeout_s
        async with environment.action_lock:
            if environment.closed:
                raise FatalEnvironmentError(f"environment {environment.env_id} is closed")
            await self._ensure_ready(environment, kind, target, timeout_s)
            started = time.monotonic()

            async def _fire() -> None:
                await self._dispatch(environment, kind, target, payload)

            try:
                exchange: NetworkExchange = await environment.backend.perform_and_wait_response(
                    _fire, matcher, timeout_ms=int(budget * 1000)
                )
            except HarnessError:
                raise
            except Exception as exc:
                cls = classify_error(exc)
                if cls == "fatal":
                    raise as_fatal(exc, context="exchange wait aborted") from exc
                if cls == "timeout":
                    raise TimeoutExceeded(
                        f"no {matcher.method} response matching {matcher.url_contains!r} "
                        f"within {budget:.2f}s",
                        timeout_s=budget,
                        details={"url_contains": matcher.url_contains, "method": matcher.method},
                    ) from exc
                raise ActionRejected(
                    f"{kind.value} rejected: {exc}",
                    details={"target": target.describe() if target else None, "error": str(exc)},
                ) from exc
            logger.debug("exchange %s %s -> %s", exchange.method, exchange.url, exchange.status)
            return ActionResult(
                kind=kind,
                success=True,
                duration_ms=int((time.monotonic() - started) * 1000),
                target=target.describe() if target else None,
                exchange=exchange,
            )

    async def _perform_unlocked(
        self,
        environment: TestEnvironment,
        kind: ActionKind,
        target: Target | None,
        payload: Any,
        timeout_s: float | None,
    ) -> ActionResult:
        if environment.closed:
            raise FatalEnvironmentError(f"environment {environment.env_id} is closed")
        if kind == ActionKind.NAVIGATE:
            return await self._navigate(environment, payload)

        await self._ensure_ready(environment, kind, target, timeout_s)
        started = time.monotonic()
        selected = await self._dispatch(environment, kind, target, payload)
        return ActionResult(
            kind=kind,
            success=True,
            duration_ms=int((time.monotonic() - started) * 1000),
            target=target.describe() if target else None,
            selected=selected,
        )

    async def _navigate(self, environment: TestEnvironment, url: str | None) -> ActionResult:
        resolved = self.resolve_url(url)
        started = time.monotonic()
        try:
            response = await environment.backend.goto(
                resolved, timeout_ms=int(self.navigation_timeout_s * 1000)
            )
        except HarnessError:
            raise
        except Exception as exc:
            if classify_error(exc) == "timeout":
                raise TimeoutExceeded(
                    f"navigation to {resolved} timed out after {self.navigation_timeout_s:.1f}s",
                    timeout_s=self.navigation_timeout_s,
                    details={"url": resolved},
                ) from exc
            raise as_fatal(exc, context=f"navigation to {resolved} failed") from exc
        logger.debug("navigated to %s (status=%s)", resolved, response.status if response else None)
        return ActionResult(
            kind=ActionKind.NAVIGATE,
            success=True,
            duration_ms=int((time.monotonic() - started) * 1000),
            url=resolved,
            response=response,
        )

    async def _ensure_ready(
        self,
        environment: TestEnvironment,
        kind: ActionKind,
        target: Target | None,
        timeout_s: float | None,
    ) -> None:
        if kind in TARGETED and target is None:
            raise ValueError(f"{kind.value} requires a target")
        if target is None:
            return
        check = actionable(target, require_enabled=kind in NEEDS_ENABLED)
        ctx = CheckContext(backend=environment.backend, base_url=self.base_url)
        try:
            await self.poller.await_condition(
                lambda: check(ctx),
                timeout_s=self.action_timeout_s if timeout_s is None else timeout_s,
                label=f"{kind.value} readiness of {target.describe()}",
            )
        except TimeoutExceeded as exc:
            last = exc.last_observation
            if last is None or not last.details.get("count"):
                raise TargetNotFound(
                    f"no element matches {target.describe()} after {exc.timeout_s:.2f}s",
                    details={"selector": target.describe(), "last": exc.details.get("last")},
                ) from exc
            raise

    async def _dispatch(
        self,
        environment: TestEnvironment,
        kind: ActionKind,
        target: Target | None,
        payload: Any,
    ) -> list[str] | None:
        backend = environment.backend
        timeout_ms = int(self.action_timeout_s * 1000)
        if kind == ActionKind.PRESS_KEY and not payload:
            raise ValueError("press_key requires a key payload")
        if kind == ActionKind.SELECT_OPTION and not isinstance(payload, OptionChoice):
            payload = OptionChoice(value=str(payload))

        selected: list[str] | None = None
        try:
            if kind == ActionKind.CLICK:
                await backend.click(target, timeout_ms=timeout_ms)
            elif kind == ActionKind.FILL:
                await backend.fill(target, str(payload or ""), timeout_ms=timeout_ms)
            elif kind == ActionKind.PRESS_KEY:
                await backend.press(target, str(payload), timeout_ms=timeout_ms)
            elif kind == ActionKind.SELECT_OPTION:
                selected = await backend.select_option(target, payload, timeout_ms=timeout_ms)
            elif kind == ActionKind.POINTER_MOVE:
                await self._pointer_move(environment, target, payload)
            elif kind == ActionKind.POINTER_DOWN:
                await backend.mouse_down()
            elif kind == ActionKind.POINTER_UP:
                await backend.mouse_up()
            else:
                raise ValueError(f"unsupported action kind: {kind}")
        except (HarnessError, ValueError):
            raise
        except Exception as exc:
            if classify_error(exc) == "fatal":
                raise as_fatal(exc, context=f"{kind.value} aborted") from exc
            raise ActionRejected(
                f"{kind.value} on {target.describe() if target else 'page'} rejected: {exc}",
                details={
                    "target": target.describe() if target else None,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            ) from exc
        return selected

    async def _pointer_move(
        self, environment: TestEnvironment, target: Target | None, payload: Any
    ) -> None:
        point = payload if isinstance(payload, Point) else Point()
        if target is None:
            await environment.backend.mouse_move(point.x, point.y)
            return
        box = await environment.backend.bounding_box(target)
        if box is None:
            raise ActionRejected(
                f"{target.describe()} has no bounding box",
                details={"target": target.describe()},
            )
        cx, cy = box.center
        await environment.backend.mouse_move(cx + point.x, cy + point.y)
