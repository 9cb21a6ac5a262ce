"""
Per-job backfill pipeline.

`JobPipeline.process` is what every pool worker runs for one record:
transform -> generate key -> upload -> record update. Each step needs the
previous one to succeed; the result is reported as a `JobOutcome` instead of
an exception so a bad record never takes a worker down.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable, Optional

from .errors import BackfillError
from .identifiers import generate_key
from .records import JobDescriptor, RecordUpdater
from .storage import ArtifactStore
from .transform_client import TransformClient

logger = logging.getLogger(__name__)

STAGE_TRANSFORM = "transform"
STAGE_STORE = "store"
STAGE_UPDATE = "update"
STAGE_DONE = "done"


@dataclass(frozen=True)
class JobOutcome:
    job: JobDescriptor
    success: bool
    stage: str
    url: Optional[str] = None
    error: Optional[str] = None


class JobPipeline:
    def __init__(
        self,
        transformer: TransformClient,
        store: ArtifactStore,
        updater: RecordUpdater,
        bucket: str,
        key_prefix: str = "images",
        key_factory: Callable[[], str] = generate_key,
    ) -> None:
        self.transformer = transformer
        self.store = store
        self.updater = updater
        self.bucket = bucket
        self.key_prefix = key_prefix.rstrip("/")
        self.key_factory = key_factory

    def storage_key(self) -> str:
        return f"{self.key_prefix}/{self.key_factory()}"

    def process(self, job: JobDescriptor, worker_id: int = 0) -> JobOutcome:
        try:
            content = self.transformer.transform(job.source_reference)
        except (BackfillError, ValueError) as exc:
            logger.warning(
                "Worker %d: transform failed for record %s (%s): %s",
                worker_id, job.record_id, job.source_reference, exc,
            )
            return JobOutcome(job, success=False, stage=STAGE_TRANSFORM, error=str(exc))

        key = self.storage_key()
        try:
            url = self.store.store(self.bucket, key, content)
        except (BackfillError, ValueError) as exc:
            logger.warning(
                "Worker %d: failed to upload to S3 for record %s (%s): %s",
                worker_id, job.record_id, job.source_reference, exc,
            )
            return JobOutcome(job, success=False, stage=STAGE_STORE, error=str(exc))

        try:
            self.updater.apply(job.record_id, [url])
        except BackfillError as exc:
            # The artifact is already stored; it stays orphaned until the next run.
            logger.warning(
                "Worker %d: failed to update record %s with %s: %s",
                worker_id, job.record_id, url, exc,
            )
            return JobOutcome(job, success=False, stage=STAGE_UPDATE, url=url, error=str(exc))

        logger.info("Worker %d: successfully updated record %s", worker_id, job.record_id)
        return JobOutcome(job, success=True, stage=STAGE_DONE, url=url)
