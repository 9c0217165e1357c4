"""
A hand-written scenario next to the stock catalog.

This example shows:
- required vs optional steps (PASSED / PARTIAL / FAILED)
- awaiting a condition with a custom timeout
- a drag gesture
- JSONL tracing of every step and verification
"""

import asyncio

from mapsmoke import (
    OPTIONAL,
    AwaitCondition,
    Drag,
    HarnessConfig,
    Navigate,
    PlaywrightEnvironmentFactory,
    Scenario,
    ScenarioExecutor,
    format_report,
    target,
)
from mapsmoke.steps import click
from mapsmoke.tracing import JsonlTraceSink, Tracer
from mapsmoke.verification import text_contains, visible

MAP = target(".leaflet-container")


async def main() -> None:
    tracer = Tracer(run_id="custom-map", sink=JsonlTraceSink("trace_custom_map.jsonl"))
    config = HarnessConfig.from_env()

    scenario = Scenario(
        id="MAP-01",
        title="Pan and zoom the map",
        steps=(
            Navigate(),
            AwaitCondition(visible(MAP), timeout_s=10.0),
            Drag(MAP, dx=-150, dy=80),
            click(target(".leaflet-control-zoom-in")),
            AwaitCondition(
                text_contains(target(".leaflet-control-attribution"), "OpenStreetMap"),
                severity=OPTIONAL,
            ),
        ),
    )

    async with PlaywrightEnvironmentFactory(browser=config.browser, headless=config.headless) as factory:
        executor = ScenarioExecutor(factory, config=config, tracer=tracer)
        report = await executor.run_all([scenario])

    tracer.close()
    print(format_report(report))


if __name__ == "__main__":
    asyncio.run(main())
