from __future__ import annotations

from unittest.mock import patch

import pytest

from mapsmoke import cli
from mapsmoke.models import Outcome, OutcomeStatus, Report
from mapsmoke.suites.navigator import build_scenarios


def test_select_scenarios_filters_and_validates() -> None:
    scenarios = build_scenarios()
    picked = cli.select_scenarios(scenarios, "tc001, TC007")
    assert [s.id for s in picked] == ["TC001", "TC007"]
    assert len(cli.select_scenarios(scenarios, None)) == len(scenarios)
    with pytest.raises(ValueError):
        cli.select_scenarios(scenarios, "TC999")


def test_config_from_args_overrides_env(monkeypatch) -> None:
    monkeypatch.setenv("MAPSMOKE_CONCURRENCY", "2")
    monkeypatch.setenv("MAPSMOKE_BASE_URL", "https://staging.navigator.ba/")
    args = cli.build_parser().parse_args(["--concurrency", "6", "--headed", "--timeout", "3"])

    config = cli.config_from_args(args)

    assert config.concurrency == 6
    assert config.headless is False
    assert config.default_timeout_s == 3.0
    assert config.base_url == "https://staging.navigator.ba/"


def test_unknown_scenario_exits_with_usage_error(capsys) -> None:
    assert cli.main(["--only", "TC999"]) == 2
    assert "TC999" in capsys.readouterr().err


def _report(status: OutcomeStatus) -> Report:
    counts = {s.value: 0 for s in OutcomeStatus}
    counts[status.value] = 1
    return Report(total=1, counts=counts, outcomes=[Outcome(scenario_id="TC002", status=status)])


@pytest.mark.parametrize(
    "status, code",
    [(OutcomeStatus.PASSED, 0), (OutcomeStatus.PARTIAL, 0), (OutcomeStatus.FAILED, 1)],
)
def test_exit_code_follows_failures(status, code, capsys) -> None:
    async def fake_run(config, scenarios, reporter):
        return _report(status)

    with patch.object(cli, "run", fake_run):
        assert cli.main(["--only", "TC002"]) == code
    assert "TC002" in capsys.readouterr().out
