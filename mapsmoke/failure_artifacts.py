from __future__ import annotations

import json
import logging
import re
import shutil
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


@dataclass
class FailureArtifactsOptions:
    buffer_seconds: float = 15.0
    capture_on_action: bool = True
    persist_mode: Literal["onFail", "always"] = "onFail"
    output_dir: str = ".mapsmoke/artifacts"
    redact_fill_values: bool = True


@dataclass
class _FrameRecord:
    ts: float
    file_name: str
    path: Path


class FailureArtifactBuffer:
    """
    Per-scenario ring buffer of screenshots plus a step log, persisted to
    ``<output_dir>/<scenario_id>-<ts>/`` when the scenario fails.
    """

    def __init__(
        self,
        *,
        scenario_id: str,
        options: FailureArtifactsOptions,
        time_fn: Callable[[], float] = time.time,
    ) -> None:
        self.scenario_id = scenario_id
        self.options = options
        self._time_fn = time_fn
        self._temp_dir = Path(tempfile.mkdtemp(prefix="mapsmoke-artifacts-"))
        self._frames_dir = self._temp_dir / "frames"
        self._frames_dir.mkdir(parents=True, exist_ok=True)
        self._frames: list[_FrameRecord] = []
        self._steps: list[dict[str, Any]] = []
        self._persisted = False

    @property
    def temp_dir(self) -> Path:
        return self._temp_dir

    def record_step(
        self,
        *,
        step_index: int,
        step: str,
        status: str,
        payload: Any = None,
        error: str | None = None,
    ) -> None:
        entry: dict[str, Any] = {
            "ts": self._time_fn(),
            "step_index": step_index,
            "step": step,
            "status": status,
        }
        if payload is not None:
            entry["payload"] = "<redacted>" if self.options.redact_fill_values else payload
        if error:
            entry["error"] = error
        self._steps.append(entry)

    def add_frame(self, image_bytes: bytes, *, fmt: str = "png") -> None:
        ts = self._time_fn()
        file_name = f"frame_{int(ts * 1000)}_{len(self._frames)}.{fmt}"
        path = self._frames_dir / file_name
        path.write_bytes(image_bytes)
        self._frames.append(_FrameRecord(ts=ts, file_name=file_name, path=path))
        self._prune()

    def frame_count(self) -> int:
        return len(self._frames)

    def _prune(self) -> None:
        cutoff = self._time_fn() - max(0.0, self.options.buffer_seconds)
        keep: list[_FrameRecord] = []
        for frame in self._frames:
            if frame.ts >= cutoff:
                keep.append(frame)
            else:
                frame.path.unlink(missing_ok=True)
        self._frames = keep

    def _write_json_atomic(self, path: Path, data: Any) -> None:
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, default=str))
        tmp_path.replace(path)

    def persist(
        self,
        *,
        reason: str | None,
        status: Literal["failure", "success"],
        metadata: dict[str, Any] | None = None,
    ) -> Path | None:
        """Copy frames and write steps.json + manifest.json. Runs at most once."""
        if self._persisted:
            return None

        output_dir = Path(self.options.output_dir)
        ts = int(self._time_fn() * 1000)
        run_dir = output_dir / f"{_UNSAFE.sub('_', self.scenario_id)}-{ts}"
        frames_out = run_dir / "frames"
        frames_out.mkdir(parents=True, exist_ok=True)

        for frame in self._frames:
            if frame.path.exists():
                shutil.copy2(frame.path, frames_out / frame.file_name)

        self._write_json_atomic(run_dir / "steps.json", self._steps)
        manifest = {
            "scenario_id": self.scenario_id,
            "created_at_ms": ts,
            "status": status,
            "reason": reason,
            "buffer_seconds": self.options.buffer_seconds,
            "frame_count": len(self._frames),
            "frames": [{"file": f.file_name, "ts": f.ts} for f in self._frames],
            "metadata": metadata or {},
        }
        self._write_json_atomic(run_dir / "manifest.json", manifest)
        self._persisted = True
        logger.info("persisted artifacts for %s to %s", self.scenario_id, run_dir)
        return run_dir

    def cleanup(self) -> None:
        if self._temp_dir.exists():
            shutil.rmtree(self._temp_dir, ignore_errors=True)
