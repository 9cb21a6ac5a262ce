"""
Entry point: wire MongoDB, the transform service and S3 into one backfill run.

Records without processed images are streamed from MongoDB into a bounded
queue; a fixed pool of workers cleans, uploads and writes back each one.
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from . import config
from .errors import FatalError
from .pipeline import JobPipeline
from .queue_worker import JobQueue, RunSummary, WorkerPool, feed
from .records import JobSource, RecordUpdater
from .storage import ArtifactStore
from .transform_client import TransformClient

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def connect_records(settings: config.Settings) -> Collection:
    """Connect to MongoDB and return the record collection; unreachable store is fatal."""
    try:
        client = MongoClient(settings.mongo_uri)
        client.admin.command("ping")
    except PyMongoError as exc:
        raise FatalError(f"MongoDB at {settings.mongo_uri} is unreachable: {exc}") from exc
    logger.info("Connected to MongoDB")
    return client[settings.mongo_database][settings.mongo_collection]


def build_pipeline(settings: config.Settings, collection: Collection) -> JobPipeline:
    return JobPipeline(
        transformer=TransformClient(settings),
        store=ArtifactStore.from_settings(settings),
        updater=RecordUpdater(collection, result_field=settings.result_field),
        bucket=settings.s3_bucket,
        key_prefix=settings.s3_key_prefix,
    )


def run_backfill(settings: config.Settings, source: JobSource, pipeline: JobPipeline) -> RunSummary:
    """
    Feed every pending record through the worker pool and wait for it to drain.

    The queue is closed only after enumeration has finished, so every worker
    sees all jobs before it observes the closure. If enumeration fails the jobs
    already queued still run to completion before the error is re-raised.
    """
    if settings.worker_count < 1:
        raise ValueError("worker_count must be at least 1 for a backfill run")

    jobs = JobQueue(settings.queue_size)
    pool = WorkerPool(pipeline, settings.worker_count)
    pool.start(jobs)
    try:
        feed(jobs, source.enumerate(settings.max_records), pool.summary)
    finally:
        jobs.close()
        summary = pool.join()
        summary.skipped = source.skipped
        logger.info(
            "All tasks completed: enqueued=%d succeeded=%d failed=%d skipped=%d orphaned=%d",
            summary.enqueued, summary.succeeded, summary.failed, summary.skipped, summary.orphaned,
        )
    return summary


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Backfill watermark-free images for pending records")
    parser.add_argument("--workers", type=int, help="Number of concurrent workers")
    parser.add_argument("--limit", type=int, help="Maximum number of records to process")
    parser.add_argument("--queue-size", type=int, help="Capacity of the job queue")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override LOG_LEVEL",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    overrides = {
        "worker_count": args.workers,
        "max_records": args.limit,
        "queue_size": args.queue_size,
        "log_level": args.log_level,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    settings = config.Settings(**overrides) if overrides else config.get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

    try:
        collection = connect_records(settings)
    except FatalError as exc:
        logger.error("%s", exc)
        return 1

    source = JobSource(collection, source_field=settings.source_field, result_field=settings.result_field)
    try:
        run_backfill(settings, source, build_pipeline(settings, collection))
    except PyMongoError as exc:
        logger.error("Enumeration of pending records failed: %s", exc)
        return 1
    return 0
