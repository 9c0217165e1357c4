"""
Run the Navigator.ba smoke catalog against a staging build.

Expectations (landing URL, texts, form data) are overridable, so the same
catalog works for a different deployment or language build.
"""

import asyncio
import logging
import os

from mapsmoke import HarnessConfig, PlaywrightEnvironmentFactory, ScenarioExecutor, format_report
from mapsmoke.failure_artifacts import FailureArtifactsOptions
from mapsmoke.suites import NavigatorExpectations, build_scenarios


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    base_url = os.getenv("NAVIGATOR_URL", "https://www.navigator.ba/")
    config = HarnessConfig(base_url=base_url, concurrency=2)
    expectations = NavigatorExpectations(landing_url=base_url + "#/categories")

    async with PlaywrightEnvironmentFactory(headless=True) as factory:
        executor = ScenarioExecutor(
            factory,
            config=config,
            artifacts=FailureArtifactsOptions(output_dir="artifacts", buffer_seconds=30),
        )
        report = await executor.run_all(build_scenarios(expectations))

    print(format_report(report))
    for outcome in report.failed:
        print(f"{outcome.scenario_id}: see {outcome.artifacts_dir}")


if __name__ == "__main__":
    asyncio.run(main())
