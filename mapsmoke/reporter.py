"""
Result reporter: collects per-scenario outcomes into a run summary.

Recording is purely additive; nothing here touches the site under test.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path

from .models import Outcome, OutcomeStatus, Report

logger = logging.getLogger(__name__)


class ResultReporter:
    def __init__(self, *, time_fn: Callable[[], float] = time.monotonic) -> None:
        self._time_fn = time_fn
        self._started = time_fn()
        self._outcomes: dict[str, Outcome] = {}
        self._lock = threading.Lock()

    def record(self, scenario_id: str, outcome: Outcome) -> None:
        with self._lock:
            if scenario_id in self._outcomes:
                raise ValueError(f"outcome for {scenario_id} already recorded")
            self._outcomes[scenario_id] = outcome
        level = logging.WARNING if outcome.status == OutcomeStatus.FAILED else logging.INFO
        logger.log(level, "%s %s", scenario_id, outcome.status.value.upper())

    def summarize(self) -> Report:
        with self._lock:
            outcomes = list(self._outcomes.values())
        counts = {status.value: 0 for status in OutcomeStatus}
        for outcome in outcomes:
            counts[outcome.status.value] += 1
        return Report(
            total=len(outcomes),
            counts=counts,
            outcomes=outcomes,
            duration_ms=int((self._time_fn() - self._started) * 1000),
        )

    def write_json(self, path: str | Path) -> Path:
        """Write the summary as JSON (atomically) and return the path."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(self.summarize().model_dump_json(indent=2))
        tmp_path.replace(path)
        return path


def format_report(report: Report) -> str:
    """
    Render a run summary for humans: one line per scenario, followed by the
    failing step (expected vs observed) for failures and partial runs.
    """
    lines = [
        f"{report.total} scenario(s): "
        + ", ".join(f"{report.counts.get(s.value, 0)} {s.value}" for s in OutcomeStatus)
        + f" in {report.duration_ms / 1000:.1f}s"
    ]
    for outcome in report.outcomes:
        title = f" - {outcome.title}" if outcome.title else ""
        lines.append(
            f"  [{outcome.status.value.upper():7}] {outcome.scenario_id}{title} "
            f"({outcome.duration_ms} ms)"
        )
        if outcome.failed_step is not None:
            f = outcome.failed_step
            lines.append(f"      step {f.step_index}: {f.step}")
            lines.append(f"      {f.error_kind}: {f.message}")
            if f.observed:
                lines.append(f"      observed: {json.dumps(f.observed, default=str)[:500]}")
        for f in outcome.optional_failures:
            lines.append(f"      optional step {f.step_index}: {f.step}: {f.error_kind}: {f.message}")
        if outcome.artifacts_dir:
            lines.append(f"      artifacts: {outcome.artifacts_dir}")
    return "\n".join(lines)
