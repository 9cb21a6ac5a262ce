"""
Bounded job queue and thread-based worker pool.

The orchestrator is the single producer: it pushes every `JobDescriptor` onto
a `JobQueue`, then closes it. Each worker thread pulls jobs until the queue is
closed and drained, runs the shared `JobPipeline` on each one and folds the
outcome into a `RunSummary`. Shutdown is "finish in-flight jobs, then stop";
there is no cancellation.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import logging
import threading
from typing import Deque, Dict, List, Optional

from .errors import QueueClosed
from .pipeline import STAGE_UPDATE, JobOutcome, JobPipeline
from .records import JobDescriptor

logger = logging.getLogger(__name__)


class JobQueue:
    """
    Closeable bounded FIFO shared by the producer and the workers.

    `put` blocks while full and `get` blocks while empty. After `close()`
    queued jobs are still handed out, then `get` raises `QueueClosed`.
    """

    def __init__(self, maxsize: int) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self._items: Deque[JobDescriptor] = deque()
        self._closed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def qsize(self) -> int:
        with self._cond:
            return len(self._items)

    def put(self, job: JobDescriptor) -> None:
        with self._cond:
            while not self._closed and len(self._items) >= self.maxsize:
                self._cond.wait()
            if self._closed:
                raise QueueClosed("put on closed job queue")
            self._items.append(job)
            self._cond.notify_all()

    def get(self) -> JobDescriptor:
        with self._cond:
            while not self._items and not self._closed:
                self._cond.wait()
            if not self._items:
                raise QueueClosed("job queue closed and drained")
            job = self._items.popleft()
            self._cond.notify_all()
            return job

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


@dataclass
class RunSummary:
    enqueued: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failures_by_stage: Dict[str, int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, outcome: JobOutcome) -> None:
        with self._lock:
            self.processed += 1
            if outcome.success:
                self.succeeded += 1
            else:
                self.failed += 1
                self.failures_by_stage[outcome.stage] = self.failures_by_stage.get(outcome.stage, 0) + 1

    def mark_enqueued(self) -> None:
        with self._lock:
            self.enqueued += 1

    @property
    def orphaned(self) -> int:
        """Artifacts that were uploaded but never written onto their record."""
        return self.failures_by_stage.get(STAGE_UPDATE, 0)


class WorkerPool:
    """Fixed number of worker threads running `pipeline` over one `JobQueue`."""

    def __init__(self, pipeline: JobPipeline, worker_count: int) -> None:
        if worker_count < 0:
            raise ValueError("worker_count must not be negative")
        self.pipeline = pipeline
        self.worker_count = worker_count
        self.summary = RunSummary()
        self._threads: List[threading.Thread] = []

    def start(self, jobs: JobQueue) -> None:
        if self._threads:
            raise RuntimeError("worker pool already started")
        for idx in range(1, self.worker_count + 1):
            t = threading.Thread(
                target=self._worker_loop,
                args=(idx, jobs),
                name=f"backfill-worker-{idx}",
                daemon=True,
            )
            self._threads.append(t)
            t.start()
        logger.info("Started %d workers", self.worker_count)

    def join(self) -> RunSummary:
        for t in self._threads:
            t.join()
        return self.summary

    def run(self, jobs: JobQueue) -> RunSummary:
        """Start the workers and wait until the (already closing) queue is drained."""
        self.start(jobs)
        return self.join()

    def _worker_loop(self, worker_id: int, jobs: JobQueue) -> None:
        while True:
            try:
                job = jobs.get()
            except QueueClosed:
                break
            logger.debug("Worker %d processing record %s", worker_id, job.record_id)
            outcome = self._process(worker_id, job)
            self.summary.record(outcome)
        logger.debug("Worker %d done", worker_id)

    def _process(self, worker_id: int, job: JobDescriptor) -> JobOutcome:
        try:
            return self.pipeline.process(job, worker_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Worker %d: unexpected error for record %s", worker_id, job.record_id)
            return JobOutcome(job, success=False, stage="unexpected", error=str(exc))


def feed(jobs: JobQueue, descriptors, summary: Optional[RunSummary] = None) -> int:
    """Push every descriptor onto `jobs` (blocking when full) and return the count."""
    count = 0
    for job in descriptors:
        jobs.put(job)
        count += 1
        if summary is not None:
            summary.mark_enqueued()
    return count
