"""
Trigger surface - the operations an operator or HTTP layer can invoke.

Every trigger enqueues onto a JobQueue and returns an acknowledgement
right away; callers that need the result can wait on the job.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .jobs import JobQueue

logger = logging.getLogger(__name__)

SYNC_QUEUE = "create-markets"
SYNC_JOB = "sync-from-indexer"
SYNC_MARKET_JOB = "sync-market"
EVALUATION_QUEUE = "evaluate-markets"
EVALUATION_JOB = "evaluate-one"


@dataclass(frozen=True)
class TriggerAck:
    """Acknowledgement returned by a trigger."""

    message: str
    job_id: str
    queue: str
    deduplicated: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "job_id": self.job_id,
            "queue": self.queue,
            "deduplicated": self.deduplicated,
            "timestamp": self.timestamp.isoformat(),
        }


class PipelineTriggers:
    """Enqueue sync and evaluation work."""

    def __init__(self, sync_queue: JobQueue, evaluation_queue: JobQueue) -> None:
        self._sync_queue = sync_queue
        self._evaluation_queue = evaluation_queue

    async def _enqueue(
        self, queue: JobQueue, job_name: str, dedup_key: str, message: str, payload=None
    ) -> TriggerAck:
        before = queue.find_unfinished(dedup_key)
        job = await queue.enqueue(job_name, payload=payload, dedup_key=dedup_key)
        deduplicated = before is job
        if deduplicated:
            message = f"{message} (already {job.status.value})"
        logger.info(f"{message}: job {job.id} on {queue.name}")
        return TriggerAck(
            message=message,
            job_id=job.id,
            queue=queue.name,
            deduplicated=deduplicated,
        )

    async def trigger_sync(self) -> TriggerAck:
        """Start a full sync pass."""
        return await self._enqueue(
            self._sync_queue, SYNC_JOB, SYNC_JOB, "Market sync job added to queue"
        )

    async def trigger_market_sync(self, market_id: int) -> TriggerAck:
        """Upsert one market from its creation event."""
        return await self._enqueue(
            self._sync_queue,
            SYNC_MARKET_JOB,
            f"{SYNC_MARKET_JOB}:{market_id}",
            f"Sync job for market {market_id} added to queue",
            payload={"market_id": market_id},
        )

    async def trigger_evaluation(self) -> TriggerAck:
        """Run one evaluation cycle."""
        return await self._enqueue(
            self._evaluation_queue,
            EVALUATION_JOB,
            EVALUATION_JOB,
            "Evaluation job added to queue",
        )
