"""
Job run repository - bounded history of queue job outcomes.
"""
from __future__ import annotations

import json

from market_sync.storage.models import JobRun
from market_sync.storage.repositories.base import BaseRepository


class JobRunRepository(BaseRepository[JobRun]):
    """Repository for pipeline_job_runs."""

    table_name = "pipeline_job_runs"
    model_class = JobRun
    json_columns = ("result_summary",)

    async def record(self, run: JobRun) -> JobRun:
        """Insert a finished job run."""
        query = """
            INSERT INTO pipeline_job_runs
            (job_id, queue, job_name, status, attempts, error_message,
             result_summary, created_at, started_at, finished_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $9, $10)
            RETURNING *
        """
        record = await self._run(
            "fetchrow",
            query,
            run.job_id,
            run.queue,
            run.job_name,
            run.status,
            run.attempts,
            run.error_message,
            json.dumps(run.result_summary, default=str) if run.result_summary is not None else None,
            run.created_at,
            run.started_at,
            run.finished_at,
        )
        return self._record_to_model(record)

    async def prune(self, queue: str, status: str, keep: int) -> int:
        """Delete all but the newest `keep` runs for a queue/status. Returns count deleted."""
        query = """
            DELETE FROM pipeline_job_runs
            WHERE queue = $1 AND status = $2
              AND id NOT IN (
                  SELECT id FROM pipeline_job_runs
                  WHERE queue = $1 AND status = $2
                  ORDER BY finished_at DESC NULLS LAST, id DESC
                  LIMIT $3
              )
        """
        result = await self._run("execute", query, queue, status, keep)
        return int(result.split()[-1]) if result else 0

    async def get_recent(self, queue: str, limit: int = 20) -> list[JobRun]:
        """Newest runs for a queue."""
        query = """
            SELECT * FROM pipeline_job_runs
            WHERE queue = $1
            ORDER BY finished_at DESC NULLS LAST, id DESC
            LIMIT $2
        """
        records = await self._run("fetch", query, queue, limit)
        return self._records_to_models(records)
