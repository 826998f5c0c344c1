"""
Script to run one ETL job from the command line

Usage:
    python scripts/run_etl.py hot-trends
    python scripts/run_etl.py category --categories dance comedy --limit 10
    python scripts/run_etl.py stats-refresh --limit 50
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import build_engine, build_session_factory
from core.logging import setup_logging
from ingestion.runner import ETLRunner
from models.base import JobType

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a trending template ETL job")
    parser.add_argument("job_type", choices=[t.value for t in JobType], help="Job type to run")
    parser.add_argument("--categories", nargs="+", help="Categories for a category job")
    parser.add_argument("--limit", type=int, help="Items per category or templates to refresh")
    parser.add_argument("--max-videos", type=int, help="Maximum trending videos to scrape")
    return parser.parse_args(argv)


def job_params(args: argparse.Namespace) -> dict:
    params = {}
    if args.categories:
        params["categories"] = args.categories
    if args.limit:
        params["limit"] = args.limit
    if args.max_videos:
        params["options"] = {"maxVideos": args.max_videos}
    return params


async def run_etl(args: argparse.Namespace) -> int:
    """Run the requested job; returns the process exit code"""
    engine = build_engine(settings.DATABASE_URL)
    runner = ETLRunner.from_session_factory(build_session_factory(engine))

    try:
        logger.info(f"Running {args.job_type} job")
        result = await runner.run_job(args.job_type, **job_params(args))
        logger.info(f"{args.job_type} job finished: {result.model_dump(exclude={'templates'})}")
        return 0

    except Exception as e:
        logger.error(f"{args.job_type} job failed: {str(e)}")
        return 1

    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_etl(parse_args())))
