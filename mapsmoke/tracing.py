"""
Run tracing: structured events for each scenario and step.

    tracer = Tracer(run_id="smoke-2024-05-01", sink=JsonlTraceSink("traces/smoke.jsonl"))
    executor = ScenarioExecutor(factory, config=config, tracer=tracer)

Events: scenario_start, step_start, verification, step_end, scenario_end.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class TraceSink(Protocol):
    def write(self, event: dict[str, Any]) -> None: ...

    def close(self) -> None: ...


class MemoryTraceSink:
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def write(self, event: dict[str, Any]) -> None:
        self.events.append(event)

    def close(self) -> None:
        return None


class JsonlTraceSink:
    """Appends one JSON object per line."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("a", encoding="utf-8")
        self._lock = threading.Lock()

    def write(self, event: dict[str, Any]) -> None:
        line = json.dumps(event, ensure_ascii=False, default=str)
        with self._lock:
            self._fh.write(line + "\n")
            self._fh.flush()

    def close(self) -> None:
        with self._lock:
            if not self._fh.closed:
                self._fh.close()


class Tracer:
    def __init__(self, run_id: str, sink: TraceSink | None = None) -> None:
        self.run_id = run_id
        self.sink = sink or MemoryTraceSink()
        self._seq = 0

    def emit(
        self,
        event_type: str,
        data: dict[str, Any],
        step_id: str | None = None,
        scenario_id: str | None = None,
    ) -> None:
        self._seq += 1
        event = {
            "v": 1,
            "type": event_type,
            "ts": time.time(),
            "seq": self._seq,
            "run_id": self.run_id,
            "scenario_id": scenario_id,
            "step_id": step_id,
            "data": data,
        }
        try:
            self.sink.write(event)
        except Exception as exc:
            # Tracing must never fail a run.
            logger.warning("trace sink write failed: %s", exc)

    def close(self) -> None:
        self.sink.close()
