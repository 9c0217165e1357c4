"""
mapsmoke: asynchronous UI smoke harness for map web applications.

This package provides:
- ConditionPoller (bounded polling of async checks)
- ActionDispatcher (readiness-gated browser actions)
- ScenarioExecutor (isolated, severity-aware scenario runs)
- ResultReporter (per-run summaries)
"""

from .config import HarnessConfig
from .dispatcher import ActionDispatcher
from .environment import PlaywrightEnvironmentFactory, TestEnvironment
from .errors import (
    ActionRejected,
    AssertionFailed,
    FatalEnvironmentError,
    HarnessError,
    TargetNotFound,
    TimeoutExceeded,
)
from .executor import ScenarioExecutor
from .models import (
    EnvironmentConfig,
    NetworkExchange,
    Outcome,
    OutcomeStatus,
    Report,
    Severity,
    Target,
    target,
)
from .poller import ConditionPoller
from .reporter import ResultReporter, format_report
from .steps import (
    OPTIONAL,
    REQUIRED,
    Act,
    ActAndAwaitExchange,
    Assert,
    AwaitCondition,
    Drag,
    Locate,
    Navigate,
    Scenario,
)

__version__ = "0.1.0"

__all__ = [
    "OPTIONAL",
    "REQUIRED",
    "Act",
    "ActAndAwaitExchange",
    "ActionDispatcher",
    "ActionRejected",
    "Assert",
    "AssertionFailed",
    "AwaitCondition",
    "ConditionPoller",
    "Drag",
    "EnvironmentConfig",
    "FatalEnvironmentError",
    "HarnessConfig",
    "HarnessError",
    "Locate",
    "Navigate",
    "NetworkExchange",
    "Outcome",
    "OutcomeStatus",
    "PlaywrightEnvironmentFactory",
    "Report",
    "ResultReporter",
    "Scenario",
    "ScenarioExecutor",
    "Severity",
    "Target",
    "TargetNotFound",
    "TestEnvironment",
    "TimeoutExceeded",
    "format_report",
    "target",
]
