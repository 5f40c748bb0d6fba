"""
Command line entry point: etl-orchestrator

Commands:
    init-db           Create the database schema for the configured store
    run JOB_ID...     Execute one job, or several as a batch
    status            Print the system status snapshot
    serve             Start the HTTP API with uvicorn
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional
from core.config import settings
from core.exceptions import ETLException
from core.logging import setup_logging
from storage.memory import InMemoryStore
from storage.sql import build_store
from ingestion.container import build_services, ETLServices

logger = logging.getLogger(__name__)


def _services() -> ETLServices:
    store = build_store(settings)
    if isinstance(store, InMemoryStore):
        logger.warning("STORAGE_BACKEND is 'memory': state only lives for this command")
    return build_services(store)


async def init_db() -> int:
    services = _services()
    await services.startup()
    await services.shutdown()
    logger.info("Storage initialized")
    return 0


async def run_jobs(job_ids: List[str]) -> int:
    services = _services()
    await services.startup()
    try:
        if len(job_ids) == 1:
            try:
                result = await services.executor.execute_job(job_ids[0])
            except ETLException as e:
                logger.error(f"Job {job_ids[0]} could not be executed: {e.message}")
                return 2
            print(result.model_dump_json(indent=2))
            return 0 if result.success else 1

        batch = await services.batch.execute_batch_jobs(job_ids)
        print(batch.model_dump_json(indent=2))
        return 0 if batch.failure_count == 0 else 1
    finally:
        await services.shutdown()


async def show_status() -> int:
    services = _services()
    await services.startup()
    try:
        snapshot = await services.status.snapshot()
        print(snapshot.model_dump_json(indent=2))
        return 0
    finally:
        await services.shutdown()


def serve(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=host, port=port, log_level=settings.LOG_LEVEL.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="etl-orchestrator", description="ETL job orchestration engine")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database schema")

    run_parser = commands.add_parser("run", help="Execute jobs by id")
    run_parser.add_argument("job_ids", nargs="+", metavar="JOB_ID")

    commands.add_parser("status", help="Print the system status snapshot")

    serve_parser = commands.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=settings.API_HOST)
    serve_parser.add_argument("--port", type=int, default=settings.API_PORT)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "init-db":
        return asyncio.run(init_db())
    if args.command == "run":
        return asyncio.run(run_jobs(args.job_ids))
    if args.command == "status":
        return asyncio.run(show_status())
    return serve(args.host, args.port)


if __name__ == "__main__":
    sys.exit(main())
