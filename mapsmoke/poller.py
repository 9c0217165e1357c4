"""
Condition poller.

Repeatedly evaluates a probe against live, asynchronously mutating page state
until it passes or the time budget runs out:

    poller = ConditionPoller(default_timeout_s=5.0, poll_s=0.1)
    outcome = await poller.await_condition(
        lambda: visible(target(".leaflet-container"))(ctx),
        label="map visible",
    )

Transient probe errors (element not attached yet, execution context destroyed
by a navigation, a single slow evaluation) are treated as "not satisfied yet".
Fatal errors (closed browser, crashed page) propagate immediately.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from .errors import FatalEnvironmentError, TimeoutExceeded, as_fatal, is_fatal_error
from .models import AssertOutcome

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable["AssertOutcome | bool"]]

MIN_POLL_S = 0.01


def _normalize(result: AssertOutcome | bool) -> AssertOutcome:
    if isinstance(result, AssertOutcome):
        return result
    return AssertOutcome(passed=bool(result), reason="" if result else "predicate returned false")


class ConditionPoller:
    def __init__(
        self,
        *,
        default_timeout_s: float = 5.0,
        poll_s: float = 0.1,
        time_fn: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if default_timeout_s < 0:
            raise ValueError("default_timeout_s must be >= 0")
        if poll_s <= 0:
            raise ValueError("poll_s must be > 0")
        self.default_timeout_s = default_timeout_s
        self.poll_s = poll_s
        self._time_fn = time_fn
        self._sleep_fn = sleep_fn

    async def await_condition(
        self,
        probe: Probe,
        *,
        timeout_s: float | None = None,
        poll_s: float | None = None,
        label: str = "condition",
    ) -> AssertOutcome:
        """
        Wait until ``probe`` yields a passing observation and return it.

        Args:
            probe: Async callable returning an AssertOutcome or a bool
            timeout_s: Budget in seconds (defaults to the poller's default)
            poll_s: Delay between attempts, clamped to the budget
            label: Human-readable name used in logs and errors

        Raises:
            TimeoutExceeded: No passing observation within the budget. The
                last observation (or None) is attached.
            FatalEnvironmentError: The environment is gone.
        """
        budget = self.default_timeout_s if timeout_s is None else float(timeout_s)
        interval = self.poll_s if poll_s is None else float(poll_s)
        interval = max(MIN_POLL_S, min(interval, budget)) if budget > 0 else MIN_POLL_S

        start = self._time_fn()
        deadline = start + budget
        attempt = 0
        last: AssertOutcome | None = None

        while True:
            attempt += 1
            remaining = deadline - self._time_fn()
            try:
                # Bound a single evaluation so a hung probe cannot outlive the budget.
                result = await asyncio.wait_for(probe(), timeout=max(remaining, interval))
                last = _normalize(result)
            except FatalEnvironmentError:
                raise
            except Exception as exc:
                if is_fatal_error(exc):
                    raise as_fatal(exc, context=f"{label} aborted") from exc
                details = dict(last.details) if last is not None else {}
                details.update({"error": str(exc), "error_type": type(exc).__name__})
                last = AssertOutcome(passed=False, reason=f"probe error: {exc}", details=details)

            if last.passed:
                logger.debug("%s satisfied after %d attempt(s)", label, attempt)
                return last

            if self._time_fn() >= deadline:
                break

            logger.debug("%s not satisfied (attempt %d): %s", label, attempt, last.reason)
            await self._sleep_fn(min(interval, max(0.0, deadline - self._time_fn())))

        elapsed = self._time_fn() - start
        reason = last.reason if last is not None else "no observation"
        raise TimeoutExceeded(
            f"{label} not satisfied within {budget:.2f}s ({attempt} attempt(s)): {reason}",
            last_observation=last,
            timeout_s=budget,
            details={
                "label": label,
                "attempts": attempt,
                "elapsed_s": round(elapsed, 3),
                "last": last.model_dump() if last is not None else None,
            },
        )
