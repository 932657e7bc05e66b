"""
JobQueue - named in-process work queues with retry and bounded history.

Each queue has a single worker, so at most one job per queue is active at
a time. Enqueueing a dedup key that is already waiting or active returns
the existing job instead of adding another, which keeps scheduler ticks
from stacking up a backlog behind a slow pass.

A failing handler is retried with exponential backoff up to the policy's
attempt budget, then recorded as failed. Completed and failed jobs are
kept in bounded deques and optionally mirrored to pipeline_job_runs.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from market_sync.errors import ConfigurationError, StoreError
from market_sync.storage.models import JobRun

if TYPE_CHECKING:
    from market_sync.storage.repositories.job_repo import JobRunRepository

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and exponential backoff between attempts."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ConfigurationError("retry delays must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Delay before the attempt after `attempt` (1-based)."""
        return min(self.initial_delay * (self.multiplier ** (attempt - 1)), self.max_delay)


@dataclass
class Job:
    """One unit of queued work."""

    queue: str
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    dedup_key: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    status: JobStatus = JobStatus.WAITING
    attempts: int = 0
    result: Any = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    async def wait(self, timeout: Optional[float] = None) -> "Job":
        """Wait until the job completes or fails."""
        await asyncio.wait_for(self._done.wait(), timeout=timeout)
        return self

    def result_summary(self) -> Optional[dict]:
        if self.result is None:
            return None
        if hasattr(self.result, "to_dict"):
            return self.result.to_dict()
        if isinstance(self.result, dict):
            return self.result
        return {"result": str(self.result)}

    def to_run(self) -> JobRun:
        return JobRun(
            job_id=self.id,
            queue=self.queue,
            job_name=self.name,
            status=self.status.value,
            attempts=self.attempts,
            error_message=self.error,
            result_summary=self.result_summary(),
            created_at=self.created_at,
            started_at=self.started_at,
            finished_at=self.finished_at,
        )


JobHandler = Callable[[Job], Awaitable[Any]]


class JobQueue:
    """
    A named queue with one worker.

    Usage:
        queue = JobQueue("create-markets", RetryPolicy(max_attempts=3))
        queue.register("sync-from-indexer", handle_sync)
        await queue.start()
        job = await queue.enqueue("sync-from-indexer", dedup_key="sync-from-indexer")
        await job.wait()
        await queue.stop()
    """

    def __init__(
        self,
        name: str,
        retry_policy: Optional[RetryPolicy] = None,
        keep_completed: int = 5,
        keep_failed: int = 10,
        history: Optional["JobRunRepository"] = None,
    ) -> None:
        self.name = name
        self.retry_policy = retry_policy or RetryPolicy()
        self._keep_completed = keep_completed
        self._keep_failed = keep_failed
        self._history = history

        self._handlers: dict[str, JobHandler] = {}
        self._pending: asyncio.Queue[Job] = asyncio.Queue()
        self._jobs: dict[str, Job] = {}
        self._by_dedup_key: dict[str, Job] = {}
        self._completed: deque[Job] = deque(maxlen=keep_completed)
        self._failed: deque[Job] = deque(maxlen=keep_failed)
        self._active: Optional[Job] = None

        self._running = False
        self._worker: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active(self) -> Optional[Job]:
        return self._active

    @property
    def completed(self) -> list[Job]:
        """Most recent completed jobs, oldest first."""
        return list(self._completed)

    @property
    def failed(self) -> list[Job]:
        """Most recent failed jobs, oldest first."""
        return list(self._failed)

    def register(self, job_name: str, handler: JobHandler) -> None:
        self._handlers[job_name] = handler

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def find_unfinished(self, dedup_key: str) -> Optional[Job]:
        """The waiting or active job holding dedup_key, if any."""
        return self._by_dedup_key.get(dedup_key)

    def stats(self) -> dict[str, Any]:
        return {
            "queue": self.name,
            "running": self._running,
            "waiting": self._pending.qsize(),
            "active": self._active.id if self._active else None,
            "completed": len(self._completed),
            "failed": len(self._failed),
        }

    async def enqueue(
        self,
        job_name: str,
        payload: Optional[dict[str, Any]] = None,
        dedup_key: Optional[str] = None,
    ) -> Job:
        """
        Add a job, or return the waiting/active job with the same dedup key.

        Raises:
            ConfigurationError: If no handler is registered for job_name
        """
        if job_name not in self._handlers:
            raise ConfigurationError(f"No handler for job {job_name!r} on queue {self.name!r}")

        if dedup_key is not None:
            existing = self._by_dedup_key.get(dedup_key)
            if existing is not None and not existing.is_finished:
                logger.debug(f"Job {dedup_key} already {existing.status.value} on {self.name}")
                return existing

        job = Job(queue=self.name, name=job_name, payload=payload or {}, dedup_key=dedup_key)
        self._jobs[job.id] = job
        if dedup_key is not None:
            self._by_dedup_key[dedup_key] = job
        await self._pending.put(job)
        logger.debug(f"Enqueued {job_name} job {job.id} on {self.name}")
        return job

    async def start(self) -> None:
        if self._running:
            logger.warning(f"JobQueue {self.name} already running")
            return
        self._running = True
        self._stop_event.clear()
        self._worker = asyncio.create_task(self._work_loop(), name=f"queue:{self.name}")
        logger.info(f"Started job queue {self.name}")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._stop_event.set()
        if self._worker and not self._worker.done():
            self._worker.cancel()
            await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None
        logger.info(f"Stopped job queue {self.name}")

    async def _work_loop(self) -> None:
        while self._running:
            job = await self._pending.get()
            try:
                await self._run_job(job)
            finally:
                self._pending.task_done()

    async def _run_job(self, job: Job) -> None:
        """Run a job through its attempt budget, then record the outcome."""
        handler = self._handlers[job.name]
        self._active = job
        job.status = JobStatus.ACTIVE
        job.started_at = datetime.now(timezone.utc)
        logger.info(f"Processing {self.name} job {job.id} ({job.name})")

        try:
            while True:
                job.attempts += 1
                try:
                    job.result = await handler(job)
                    job.status = JobStatus.COMPLETED
                    job.error = None
                    break
                except asyncio.CancelledError:
                    raise
                except ConfigurationError as e:
                    job.error = str(e)
                    job.status = JobStatus.FAILED
                    logger.error(f"Job {job.id} failed on configuration: {e}")
                    break
                except Exception as e:
                    job.error = f"{type(e).__name__}: {e}"
                    if job.attempts >= self.retry_policy.max_attempts:
                        job.status = JobStatus.FAILED
                        logger.error(
                            f"Job {job.id} failed after {job.attempts} attempts: {e}"
                        )
                        break
                    delay = self.retry_policy.delay_for(job.attempts)
                    logger.warning(
                        f"Job {job.id} attempt {job.attempts}/"
                        f"{self.retry_policy.max_attempts} failed: {e}, "
                        f"retrying in {delay}s"
                    )
                    try:
                        await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                        job.status = JobStatus.FAILED
                        break  # Stop requested
                    except asyncio.TimeoutError:
                        pass
        except asyncio.CancelledError:
            job.status = JobStatus.FAILED
            job.error = "cancelled"
            logger.warning(f"Job {job.id} cancelled while running on {self.name}")
            self._archive(job)
            raise
        finally:
            self._active = None
            job.finished_at = datetime.now(timezone.utc)
            if job.dedup_key is not None and self._by_dedup_key.get(job.dedup_key) is job:
                del self._by_dedup_key[job.dedup_key]
            job._done.set()

        await self._retire(job)

    def _archive(self, job: Job) -> int:
        """Move a finished job into bounded in-memory history; returns the keep limit."""
        if job.status == JobStatus.COMPLETED:
            history, keep = self._completed, self._keep_completed
            logger.info(f"Job {job.id} completed: {job.result_summary()}")
        else:
            history, keep = self._failed, self._keep_failed

        if history.maxlen and len(history) == history.maxlen:
            self._jobs.pop(history[0].id, None)
        history.append(job)
        if not history.maxlen:
            self._jobs.pop(job.id, None)
        return keep

    async def _retire(self, job: Job) -> None:
        """Archive a finished job and mirror it to the run history table."""
        keep = self._archive(job)
        if self._history is None:
            return
        try:
            await self._history.record(job.to_run())
            await self._history.prune(self.name, job.status.value, keep)
        except StoreError as e:
            logger.error(f"Failed to record job {job.id} history: {e}")
