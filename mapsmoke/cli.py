"""
Command line entry point.

    mapsmoke --only TC001,TC007 --concurrency 2 --report-json out/report.json
    python -m mapsmoke --headed --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from collections.abc import Sequence

from .config import BROWSERS, HarnessConfig
from .environment import PlaywrightEnvironmentFactory
from .executor import ScenarioExecutor
from .models import Report
from .reporter import ResultReporter, format_report
from .steps import Scenario
from .suites.navigator import build_scenarios
from .tracing import JsonlTraceSink, Tracer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mapsmoke", description="Run the Navigator.ba smoke scenarios"
    )
    parser.add_argument("--base-url", help="Base URL under test (default: MAPSMOKE_BASE_URL or navigator.ba)")
    parser.add_argument("--browser", choices=BROWSERS, help="Browser engine")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--only", help="Comma-separated scenario ids, e.g. TC001,TC007")
    parser.add_argument("--concurrency", type=int, help="Scenarios run in parallel")
    parser.add_argument("--timeout", type=float, help="Default condition/action timeout in seconds")
    parser.add_argument("--report-json", help="Write the run summary as JSON to this path")
    parser.add_argument("--artifacts-dir", help="Persist screenshots and step logs of failed scenarios here")
    parser.add_argument("--trace", help="Append JSONL trace events to this path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def select_scenarios(scenarios: Sequence[Scenario], only: str | None) -> list[Scenario]:
    if not only:
        return list(scenarios)
    wanted = [s.strip().upper() for s in only.split(",") if s.strip()]
    known = {s.id for s in scenarios}
    unknown = [w for w in wanted if w not in known]
    if unknown:
        raise ValueError(f"unknown scenario id(s): {', '.join(unknown)}")
    return [s for s in scenarios if s.id in wanted]


def config_from_args(args: argparse.Namespace) -> HarnessConfig:
    config = HarnessConfig.from_env()
    return config.with_overrides(
        base_url=args.base_url,
        browser=args.browser,
        headless=False if args.headed else None,
        concurrency=args.concurrency,
        default_timeout_s=args.timeout,
        artifacts_dir=args.artifacts_dir,
        trace_path=args.trace,
    )


async def run(
    config: HarnessConfig, scenarios: Sequence[Scenario], reporter: ResultReporter
) -> Report:
    tracer = (
        Tracer(run_id=uuid.uuid4().hex, sink=JsonlTraceSink(config.trace_path))
        if config.trace_path
        else None
    )
    try:
        async with PlaywrightEnvironmentFactory(
            browser=config.browser,  # type: ignore[arg-type]
            headless=config.headless,
            default_timeout_ms=int(config.default_timeout_s * 1000),
            navigation_timeout_ms=int(config.navigation_timeout_s * 1000),
        ) as factory:
            executor = ScenarioExecutor(factory, config=config, reporter=reporter, tracer=tracer)
            return await executor.run_all(scenarios)
    finally:
        if tracer is not None:
            tracer.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = config_from_args(args)
        scenarios = select_scenarios(build_scenarios(), args.only)
    except ValueError as exc:
        print(f"mapsmoke: {exc}", file=sys.stderr)
        return 2

    logger.info("running %d scenario(s) against %s", len(scenarios), config.base_url)
    reporter = ResultReporter()
    report = asyncio.run(run(config, scenarios, reporter))
    print(format_report(report))
    if args.report_json:
        path = reporter.write_json(args.report_json)
        logger.info("wrote report to %s", path)
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
