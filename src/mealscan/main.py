"""Run a benchmark evaluation and print its summary."""

import asyncio
import sys

from mealscan.app_logging import configure_logging
from mealscan.containers import AppContainer, build_container
from mealscan.services.reporting import render_run_summary


def main(argv: list[str] | None = None) -> None:
    """Evaluate the given benchmark ids, or the default batch when none are given."""
    configure_logging()
    benchmark_ids = list(argv) if argv is not None else sys.argv[1:]
    asyncio.run(_run_evaluation(build_container(), benchmark_ids))


async def _run_evaluation(container: AppContainer, benchmark_ids: list[str]) -> None:
    try:
        run = await container.evaluation_service.run(benchmark_ids or None)
        print(render_run_summary(run))
    finally:
        await container.close_resources()


if __name__ == "__main__":
    main()
