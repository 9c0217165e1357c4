"""Harness configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .constants import (
    DEFAULT_BASE_URL,
    DEFAULT_CONCURRENCY,
    DEFAULT_NAVIGATION_TIMEOUT_S,
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_SCENARIO_TIMEOUT_S,
    DEFAULT_TIMEOUT_S,
    ENV_PREFIX,
)
from .models import EnvironmentConfig

BROWSERS = ("chromium", "firefox", "webkit")

_FALSE = {"0", "false", "no", "off"}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() not in _FALSE


def _parse_positive_float(name: str, value: str) -> float:
    try:
        f = float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if f <= 0:
        raise ValueError(f"{name} must be > 0, got {value!r}")
    return f


@dataclass(frozen=True)
class HarnessConfig:
    """
    Runner-wide settings.

    ``environment`` is the default EnvironmentConfig; scenarios may override
    individual options on top of it.
    """

    base_url: str = DEFAULT_BASE_URL
    browser: str = "chromium"
    headless: bool = True
    default_timeout_s: float = DEFAULT_TIMEOUT_S
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    navigation_timeout_s: float = DEFAULT_NAVIGATION_TIMEOUT_S
    scenario_timeout_s: float = DEFAULT_SCENARIO_TIMEOUT_S
    concurrency: int = DEFAULT_CONCURRENCY
    artifacts_dir: str | None = None
    trace_path: str | None = None
    environment: EnvironmentConfig = field(default_factory=EnvironmentConfig)

    def __post_init__(self) -> None:
        if self.browser not in BROWSERS:
            raise ValueError(f"browser must be one of {BROWSERS}, got {self.browser!r}")
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        for name in ("default_timeout_s", "poll_interval_s", "navigation_timeout_s", "scenario_timeout_s"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if self.poll_interval_s > self.default_timeout_s:
            raise ValueError("poll_interval_s must not exceed default_timeout_s")

    def with_overrides(self, **changes: Any) -> HarnessConfig:
        """Copy with the non-None ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> HarnessConfig:
        """
        Build a config from ``MAPSMOKE_*`` environment variables.

        Recognised: MAPSMOKE_BASE_URL, MAPSMOKE_BROWSER, MAPSMOKE_HEADLESS,
        MAPSMOKE_TIMEOUT_S, MAPSMOKE_NAVIGATION_TIMEOUT_S,
        MAPSMOKE_SCENARIO_TIMEOUT_S, MAPSMOKE_CONCURRENCY,
        MAPSMOKE_ARTIFACTS_DIR, MAPSMOKE_TRACE, MAPSMOKE_LOCALE.
        """
        env = os.environ if environ is None else environ

        def get(key: str) -> str | None:
            value = env.get(ENV_PREFIX + key)
            return value.strip() if value is not None and value.strip() else None

        changes: dict[str, Any] = {}
        base_url = get("BASE_URL")
        if base_url is not None:
            changes["base_url"] = base_url
        browser = get("BROWSER")
        if browser is not None:
            changes["browser"] = browser.lower()
        headless = get("HEADLESS")
        if headless is not None:
            changes["headless"] = _parse_bool(headless)
        for key, attr in (
            ("TIMEOUT_S", "default_timeout_s"),
            ("NAVIGATION_TIMEOUT_S", "navigation_timeout_s"),
            ("SCENARIO_TIMEOUT_S", "scenario_timeout_s"),
        ):
            value = get(key)
            if value is not None:
                changes[attr] = _parse_positive_float(ENV_PREFIX + key, value)
        concurrency = get("CONCURRENCY")
        if concurrency is not None:
            try:
                changes["concurrency"] = int(concurrency)
            except ValueError as exc:
                raise ValueError(
                    f"MAPSMOKE_CONCURRENCY must be an integer, got {concurrency!r}"
                ) from exc
        artifacts_dir = get("ARTIFACTS_DIR")
        if artifacts_dir is not None:
            changes["artifacts_dir"] = artifacts_dir
        trace_path = get("TRACE")
        if trace_path is not None:
            changes["trace_path"] = trace_path
        locale = get("LOCALE")
        if locale is not None:
            changes["environment"] = EnvironmentConfig(locale=locale)
        return cls(**changes)
