"""ScholarWorker — unified entry point.

Start the queue worker (default):
    python -m scholarworker

Harvest one profile and print the records:
    python -m scholarworker harvest MNj1Dw4AAAAJ
    python -m scholarworker harvest MNj1Dw4AAAAJ --single-page --output papers.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv


def setup_logging(level: str = "INFO"):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


async def harvest_once(scholar_id: str, follow_pagination: bool, budget: float | None):
    """Harvest one profile outside the queue."""
    from .config import get_config
    from .harvester import Harvester, HttpPageFetcher

    config = get_config()
    async with HttpPageFetcher(config.harvest) as fetcher:
        harvester = Harvester(fetcher, config=config.harvest)
        return await harvester.run(
            scholar_id, follow_pagination=follow_pagination, time_budget=budget
        )


def main(argv=None):
    """CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="ScholarWorker — publication harvester")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level",
    )
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("worker", help="Consume harvest jobs from the queue (default)")

    harvest = commands.add_parser("harvest", help="Harvest one profile and print it")
    harvest.add_argument("scholar_id", help="Profile identifier")
    harvest.add_argument(
        "--single-page", action="store_true", help="Only read the first listing page"
    )
    harvest.add_argument(
        "--budget", type=float, default=None, help="Time budget in seconds"
    )
    harvest.add_argument("--output", "-o", help="Write records to this JSON file")

    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    if args.command == "harvest":
        from .harvester import HarvestError

        try:
            result = asyncio.run(
                harvest_once(args.scholar_id, not args.single_page, args.budget)
            )
        except HarvestError as e:
            logger.error(f"Harvest failed: {e}")
            sys.exit(1)

        payload = json.dumps([r.to_dict() for r in result.records], indent=2)
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(payload)
        else:
            print(payload)

        print(
            f"Total Publications Found: {len(result.records)} "
            f"(failures={result.failures}, partial={result.partial})",
            file=sys.stderr,
        )
    else:
        from .worker import run_worker

        try:
            asyncio.run(run_worker())
        except KeyboardInterrupt:
            logger.info("Shutting down...")
            sys.exit(0)


if __name__ == "__main__":
    main()
