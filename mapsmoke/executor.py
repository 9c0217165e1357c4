"""
Scenario executor.

Runs each Scenario in its own TestEnvironment, strictly one step after the
other, and turns the result into an Outcome:

- every step passed                       -> PASSED
- a REQUIRED step (or any fatal) failed   -> FAILED, remaining steps skipped
- only OPTIONAL steps failed              -> PARTIAL

The environment is torn down exactly once per run, whether the scenario
passed, failed, timed out or was cancelled.

Example:
    async with PlaywrightEnvironmentFactory() as factory:
        executor = ScenarioExecutor(factory, config=HarnessConfig())
        report = await executor.run_all(build_scenarios())
        print(format_report(report))
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from enum import Enum
from typing import Any

from .config import HarnessConfig
from .dispatcher import ActionDispatcher
from .environment import EnvironmentFactory, TestEnvironment
from .errors import (
    AssertionFailed,
    FatalEnvironmentError,
    HarnessError,
    TargetNotFound,
    TimeoutExceeded,
    as_fatal,
    is_fatal_error,
)
from .failure_artifacts import FailureArtifactBuffer, FailureArtifactsOptions
from .models import (
    ActionKind,
    AssertOutcome,
    ElementState,
    EnvironmentConfig,
    Outcome,
    OutcomeStatus,
    Report,
    Severity,
    StepFailure,
    StepRecord,
)
from .poller import ConditionPoller
from .reporter import ResultReporter
from .steps import (
    Act,
    ActAndAwaitExchange,
    Assert,
    AwaitCondition,
    Drag,
    Locate,
    Navigate,
    Scenario,
    Step,
)
from .tracing import Tracer
from .verification import CheckContext

logger = logging.getLogger(__name__)


class ScenarioState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


_TRANSITIONS: dict[ScenarioState, set[ScenarioState]] = {
    ScenarioState.PENDING: {ScenarioState.RUNNING},
    ScenarioState.RUNNING: {ScenarioState.PASSED, ScenarioState.FAILED, ScenarioState.PARTIAL},
}


class ScenarioRun:
    """Mutable bookkeeping for one execution of a scenario."""

    def __init__(self, scenario: Scenario) -> None:
        self.scenario = scenario
        self.state = ScenarioState.PENDING
        self.current_step: int | None = None
        self.records: list[StepRecord] = []
        self.optional_failures: list[StepFailure] = []
        self.failure: StepFailure | None = None
        self.environment_id: str | None = None

    def transition(self, new: ScenarioState) -> None:
        if new not in _TRANSITIONS.get(self.state, set()):
            raise RuntimeError(
                f"{self.scenario.id}: invalid transition {self.state.value} -> {new.value}"
            )
        self.state = new


def _observed(err: BaseException) -> dict[str, Any] | None:
    if isinstance(err, TimeoutExceeded) and err.last_observation is not None:
        last = err.last_observation
        return last.model_dump() if isinstance(last, AssertOutcome) else {"last": last}
    if isinstance(err, HarnessError) and err.details:
        return dict(err.details)
    return None


def _failure(index: int, step_desc: str, severity: Severity, err: BaseException) -> StepFailure:
    if isinstance(err, HarnessError):
        kind, code = err.kind, err.reason_code
    else:
        kind, code = "UnexpectedError", "unexpected_error"
    return StepFailure(
        step_index=index,
        step=step_desc,
        severity=severity,
        error_kind=kind,
        reason_code=code,
        message=str(err),
        observed=_observed(err),
    )


class ScenarioExecutor:
    def __init__(
        self,
        factory: EnvironmentFactory,
        *,
        config: HarnessConfig | None = None,
        poller: ConditionPoller | None = None,
        dispatcher: ActionDispatcher | None = None,
        reporter: ResultReporter | None = None,
        tracer: Tracer | None = None,
        artifacts: FailureArtifactsOptions | None = None,
    ) -> None:
        self.factory = factory
        self.config = config or HarnessConfig()
        self.poller = poller or ConditionPoller(
            default_timeout_s=self.config.default_timeout_s,
            poll_s=self.config.poll_interval_s,
        )
        self.dispatcher = dispatcher or ActionDispatcher(
            self.poller,
            base_url=self.config.base_url,
            action_timeout_s=self.config.default_timeout_s,
            navigation_timeout_s=self.config.navigation_timeout_s,
        )
        self.reporter = reporter or ResultReporter()
        self.tracer = tracer
        if artifacts is None and self.config.artifacts_dir:
            artifacts = FailureArtifactsOptions(output_dir=self.config.artifacts_dir)
        self.artifacts = artifacts

    def _emit(
        self,
        event_type: str,
        data: dict[str, Any],
        *,
        scenario_id: str,
        step_id: str | None = None,
    ) -> None:
        if self.tracer is None:
            return
        self.tracer.emit(event_type, data, step_id=step_id, scenario_id=scenario_id)

    async def run_all(
        self, scenarios: Sequence[Scenario], *, concurrency: int | None = None
    ) -> Report:
        """
        Run scenarios concurrently (each in its own environment) and return
        the reporter's summary.
        """
        ids = [s.id for s in scenarios]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate scenario ids: {', '.join(duplicates)}")

        limit = concurrency or self.config.concurrency
        semaphore = asyncio.Semaphore(max(1, limit))

        async def _one(scenario: Scenario) -> Outcome:
            async with semaphore:
                return await self.run(scenario)

        outcomes = await asyncio.gather(*(_one(s) for s in scenarios))
        # recorded in input order, not completion order
        for scenario, outcome in zip(scenarios, outcomes):
            self.reporter.record(scenario.id, outcome)
        return self.reporter.summarize()

    async def run(
        self, scenario: Scenario, environment_config: EnvironmentConfig | None = None
    ) -> Outcome:
        """
        Execute one scenario in a fresh environment.

        Args:
            scenario: Scenario to run
            environment_config: Per-call override applied on top of the
                harness default and the scenario's own override

        Returns:
            Outcome (PASSED, FAILED or PARTIAL). Step errors never escape;
            only cancellation does.
        """
        run = ScenarioRun(scenario)
        run.transition(ScenarioState.RUNNING)
        started = time.monotonic()
        config = self.config.environment.merged(scenario.environment).merged(environment_config)
        timeout_s = scenario.timeout_s or self.config.scenario_timeout_s
        artifacts = (
            FailureArtifactBuffer(scenario_id=scenario.id, options=self.artifacts)
            if self.artifacts is not None
            else None
        )
        artifacts_dir: str | None = None

        logger.info("%s started", scenario.name)
        self._emit("scenario_start", {"title": scenario.title}, scenario_id=scenario.id)

        try:
            try:
                env = await self.factory.create(config)
            except Exception as exc:
                err = as_fatal(exc, context="could not create environment")
                run.failure = _failure(-1, "create environment", Severity.REQUIRED, err)
            else:
                run.environment_id = env.env_id
                try:
                    await asyncio.wait_for(self._run_steps(run, env, artifacts), timeout=timeout_s)
                except asyncio.TimeoutError:
                    index = run.current_step if run.current_step is not None else 0
                    message = f"scenario exceeded {timeout_s:.1f}s"
                    finished = any(
                        r.step_index == index and r.status == "passed" for r in run.records
                    )
                    if finished and index + 1 < len(scenario.steps):
                        # expired between steps; the next step never got to run
                        index += 1
                    elif finished:
                        message += " after the last step completed"
                    step = scenario.steps[index]
                    run.failure = StepFailure(
                        step_index=index,
                        step=step.describe(),
                        severity=step.severity,
                        error_kind="TimeoutExceeded",
                        reason_code="scenario_timeout",
                        message=message,
                    )
                    if all(r.step_index != index for r in run.records):
                        run.records.append(
                            StepRecord(
                                step_index=index,
                                step=step.describe(),
                                severity=step.severity,
                                status="failed",
                            )
                        )
                    self._mark_skipped(run, index)
                    logger.warning("%s: %s", scenario.id, run.failure.message)
                finally:
                    try:
                        if artifacts is not None and (
                            run.failure is not None or artifacts.options.persist_mode == "always"
                        ):
                            artifacts_dir = await self._persist_artifacts(run, env, artifacts)
                    finally:
                        await self._teardown(env, scenario.id)
        finally:
            if artifacts is not None:
                artifacts.cleanup()

        if run.failure is not None:
            run.transition(ScenarioState.FAILED)
        elif run.optional_failures:
            run.transition(ScenarioState.PARTIAL)
        else:
            run.transition(ScenarioState.PASSED)

        outcome = Outcome(
            scenario_id=scenario.id,
            title=scenario.title,
            status=OutcomeStatus(run.state.value),
            reason=run.failure.message if run.failure is not None else None,
            failed_step=run.failure,
            optional_failures=list(run.optional_failures),
            steps=list(run.records),
            duration_ms=int((time.monotonic() - started) * 1000),
            environment_id=run.environment_id,
            artifacts_dir=artifacts_dir,
        )
        logger.info("%s finished: %s", scenario.name, outcome.status.value)
        self._emit(
            "scenario_end",
            {"status": outcome.status.value, "reason": outcome.reason},
            scenario_id=scenario.id,
        )
        return outcome

    async def _teardown(self, env: TestEnvironment, scenario_id: str) -> None:
        try:
            await env.close()
        except Exception as exc:
            logger.warning("%s: environment teardown failed: %s", scenario_id, exc)

    async def _persist_artifacts(
        self, run: ScenarioRun, env: TestEnvironment, artifacts: FailureArtifactBuffer
    ) -> str | None:
        if not env.closed:
            await self._capture_frame(env, artifacts)
        failed = run.failure is not None
        try:
            path = artifacts.persist(
                reason=run.failure.message if failed else None,
                status="failure" if failed else "success",
                metadata={"environment_id": env.env_id, "config": env.config.model_dump()},
            )
        except OSError as exc:
            logger.warning("%s: could not persist artifacts: %s", run.scenario.id, exc)
            return None
        return str(path) if path is not None else None

    async def _capture_frame(self, env: TestEnvironment, artifacts: FailureArtifactBuffer) -> None:
        try:
            image = await env.backend.screenshot_png()
        except Exception as exc:
            logger.debug("screenshot failed: %s", exc)
            return
        try:
            artifacts.add_frame(image)
        except OSError as exc:
            logger.warning("%s: could not store frame: %s", artifacts.scenario_id, exc)

    def _mark_skipped(self, run: ScenarioRun, failed_index: int) -> None:
        done = {r.step_index for r in run.records}
        for i, step in enumerate(run.scenario.steps):
            if i > failed_index and i not in done:
                run.records.append(
                    StepRecord(
                        step_index=i,
                        step=step.describe(),
                        severity=step.severity,
                        status="skipped",
                    )
                )

    async def _run_steps(
        self,
        run: ScenarioRun,
        env: TestEnvironment,
        artifacts: FailureArtifactBuffer | None,
    ) -> None:
        scenario = run.scenario
        ctx = CheckContext(backend=env.backend, base_url=self.config.base_url)

        for index, step in enumerate(scenario.steps):
            run.current_step = index
            step_id = f"step-{index}"
            desc = step.describe()
            self._emit(
                "step_start",
                {"step": desc, "severity": step.severity.value},
                scenario_id=scenario.id,
                step_id=step_id,
            )
            started = time.monotonic()
            try:
                await self._execute_step(step, env, ctx, scenario_id=scenario.id, step_id=step_id)
            except Exception as exc:
                err: BaseException = exc
                if not isinstance(exc, HarnessError) and is_fatal_error(exc):
                    err = as_fatal(exc, context=desc)
                failure = _failure(index, desc, step.severity, err)
                duration_ms = int((time.monotonic() - started) * 1000)
                run.records.append(
                    StepRecord(
                        step_index=index,
                        step=desc,
                        severity=step.severity,
                        status="failed",
                        duration_ms=duration_ms,
                    )
                )
                self._emit(
                    "step_end",
                    {"step": desc, "passed": False, "error": failure.model_dump()},
                    scenario_id=scenario.id,
                    step_id=step_id,
                )
                if artifacts is not None:
                    artifacts.record_step(
                        step_index=index, step=desc, status="failed", error=failure.message
                    )
                if isinstance(err, FatalEnvironmentError) or step.severity == Severity.REQUIRED:
                    logger.warning("%s: step %d failed: %s", scenario.id, index, failure.message)
                    run.failure = failure
                    self._mark_skipped(run, index)
                    return
                logger.info(
                    "%s: optional step %d failed: %s", scenario.id, index, failure.message
                )
                run.optional_failures.append(failure)
                continue

            duration_ms = int((time.monotonic() - started) * 1000)
            run.records.append(
                StepRecord(
                    step_index=index,
                    step=desc,
                    severity=step.severity,
                    status="passed",
                    duration_ms=duration_ms,
                )
            )
            self._emit(
                "step_end",
                {"step": desc, "passed": True, "duration_ms": duration_ms},
                scenario_id=scenario.id,
                step_id=step_id,
            )
            if artifacts is not None:
                payload = step.payload if isinstance(step, Act) and step.kind == ActionKind.FILL else None
                artifacts.record_step(step_index=index, step=desc, status="passed", payload=payload)
                if artifacts.options.capture_on_action and isinstance(
                    step, (Navigate, Act, Drag, ActAndAwaitExchange)
                ):
                    await self._capture_frame(env, artifacts)

    async def _execute_step(
        self,
        step: Step,
        env: TestEnvironment,
        ctx: CheckContext,
        *,
        scenario_id: str,
        step_id: str,
    ) -> None:
        if isinstance(step, Navigate):
            result = await self.dispatcher.perform(env, ActionKind.NAVIGATE, payload=step.url)
            ctx.last_response = result.response
        elif isinstance(step, Act):
            result = await self.dispatcher.perform(
                env, step.kind, step.target, step.payload, timeout_s=step.timeout_s
            )
            if step.kind == ActionKind.NAVIGATE:
                ctx.last_response = result.response
        elif isinstance(step, Drag):
            await self.dispatcher.drag(env, step.target, step.dx, step.dy, timeout_s=step.timeout_s)
        elif isinstance(step, ActAndAwaitExchange):
            result = await self.dispatcher.perform_and_await_exchange(
                env,
                step.act.kind,
                step.act.target,
                step.act.payload,
                step.matcher,
                timeout_s=step.act.timeout_s,
                exchange_timeout_s=step.timeout_s,
            )
            ctx.last_exchange = result.exchange
        elif isinstance(step, Locate):
            await self._locate(step, env, ctx)
        elif isinstance(step, AwaitCondition):
            check = step.check
            try:
                outcome = await self.poller.await_condition(
                    lambda: check(ctx),
                    timeout_s=step.timeout_s,
                    poll_s=step.poll_s,
                    label=step.describe(),
                )
            except TimeoutExceeded as exc:
                last = exc.last_observation
                self._emit_verification(
                    step, last if isinstance(last, AssertOutcome) else None, False,
                    scenario_id=scenario_id, step_id=step_id,
                )
                raise
            self._emit_verification(
                step, outcome, True, scenario_id=scenario_id, step_id=step_id
            )
        elif isinstance(step, Assert):
            outcome = await self._assert(step, ctx)
            self._emit_verification(
                step, outcome, outcome.passed, scenario_id=scenario_id, step_id=step_id
            )
            if not outcome.passed:
                raise AssertionFailed(
                    outcome.reason or f"{step.describe()} evaluated false",
                    details=outcome.details,
                )
        else:
            raise TypeError(f"unsupported step type: {type(step).__name__}")

    async def _locate(self, step: Locate, env: TestEnvironment, ctx: CheckContext) -> None:
        seen: dict[str, ElementState] = {}

        async def _probe() -> AssertOutcome:
            state = await env.backend.inspect(step.target)
            seen["state"] = state
            return AssertOutcome(
                passed=state.attached,
                reason="" if state.attached else f"no element matches {step.target.describe()}",
                details={"selector": step.target.describe(), "count": state.count},
            )

        try:
            await self.poller.await_condition(
                _probe, timeout_s=step.timeout_s, label=step.describe()
            )
        except TimeoutExceeded as exc:
            raise TargetNotFound(
                f"no element matches {step.target.describe()} after {exc.timeout_s:.2f}s",
                details={"selector": step.target.describe()},
            ) from exc
        ctx.located[step.name or step.target.selector] = seen["state"]

    def _emit_verification(
        self,
        step: Step,
        outcome: AssertOutcome | None,
        passed: bool,
        *,
        scenario_id: str,
        step_id: str,
    ) -> None:
        data: dict[str, Any] = {"check": step.describe(), "passed": passed}
        if outcome is not None:
            data["reason"] = outcome.reason
            data["details"] = outcome.details
        self._emit("verification", data, scenario_id=scenario_id, step_id=step_id)

    async def _assert(self, step: Assert, ctx: CheckContext) -> AssertOutcome:
        """Evaluate once; errors while evaluating count as a failed assertion."""
        try:
            return await step.check(ctx)
        except HarnessError:
            raise
        except Exception as exc:
            if is_fatal_error(exc):
                raise as_fatal(exc, context=step.describe()) from exc
            raise AssertionFailed(
                f"{step.describe()} could not be evaluated: {exc}",
                details={"error": str(exc), "error_type": type(exc).__name__},
            ) from exc
