"""
PipelineService - composition root for the sync and evaluation pipeline.

Builds every collaborator explicitly from a PipelineConfig and owns their
lifetimes: the asyncpg pool, the indexer and metadata HTTP sessions, the
two job queues and the scheduler. Nothing here is a module-level singleton.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from market_sync.config import PipelineConfig
from market_sync.core.jobs import Job, JobQueue, RetryPolicy
from market_sync.core.reconciler import MarketReconciler, SyncReport
from market_sync.core.scheduler import Scheduler, SchedulerConfig
from market_sync.core.triggers import (
    EVALUATION_JOB,
    EVALUATION_QUEUE,
    SYNC_JOB,
    SYNC_MARKET_JOB,
    SYNC_QUEUE,
    PipelineTriggers,
)
from market_sync.evaluation.engine import EvaluationEngine
from market_sync.evaluation.models import EvaluationOutcome
from market_sync.evaluation.providers import ScoringProvider, build_providers
from market_sync.ingestion.batch import BatchFetcher
from market_sync.ingestion.client import IndexerClient
from market_sync.ingestion.metadata import MetadataFetcher
from market_sync.storage import (
    Database,
    DatabaseConfig,
    JobRunRepository,
    MarketRepository,
    ensure_schema,
)

logger = logging.getLogger(__name__)


class PipelineService:
    """
    Wires and runs the pipeline.

    Usage:
        service = PipelineService(PipelineConfig.from_env())
        await service.start()
        ack = await service.triggers.trigger_sync()
        ...
        await service.stop()

    One-shot use (no queues or scheduler):
        async with PipelineService(config) as service:
            report = await service.sync_pass()
    """

    def __init__(
        self,
        config: PipelineConfig,
        db: Optional[Database] = None,
        index: Optional[IndexerClient] = None,
        metadata: Optional[MetadataFetcher] = None,
        providers: Optional[Sequence[ScoringProvider]] = None,
    ) -> None:
        self.config = config
        self._db = db or Database(DatabaseConfig(url=config.database_url))
        self._index = index or IndexerClient(
            config.indexer_url, timeout=config.indexer_timeout_seconds
        )
        self._metadata = metadata or MetadataFetcher(timeout=config.metadata_timeout_seconds)
        self._providers = list(providers) if providers is not None else build_providers(config)

        self.markets = MarketRepository(self._db)
        self.job_runs = JobRunRepository(self._db)

        self.reconciler = MarketReconciler(
            index=self._index,
            store=self.markets,
            metadata=self._metadata,
            batch=BatchFetcher(config.fetch_window_size, config.fetch_window_delay_seconds),
            page_size=config.discovery_page_size,
            max_pages=config.discovery_max_pages,
            resolution_event_limit=config.resolution_event_limit,
            trade_event_limit=config.trade_event_limit,
            refresh_existing=config.refresh_existing_markets,
        )
        self.engine = EvaluationEngine(self.markets, self._providers, self._metadata)

        retry = RetryPolicy(
            max_attempts=config.job_max_attempts,
            initial_delay=config.job_retry_initial_delay_seconds,
            max_delay=config.job_retry_max_delay_seconds,
        )
        self.sync_queue = self._make_queue(SYNC_QUEUE, retry)
        self.sync_queue.register(SYNC_JOB, self._handle_sync)
        self.sync_queue.register(SYNC_MARKET_JOB, self._handle_market_sync)
        # An evaluation cycle already falls back to the heuristic, so a
        # failed cycle is not retried; the next tick picks the market up.
        self.evaluation_queue = self._make_queue(EVALUATION_QUEUE, RetryPolicy(max_attempts=1))
        self.evaluation_queue.register(EVALUATION_JOB, self._handle_evaluation)

        self.triggers = PipelineTriggers(self.sync_queue, self.evaluation_queue)
        self.scheduler = Scheduler(
            self.triggers,
            SchedulerConfig(
                discovery_enabled=config.discovery_schedule_enabled,
                discovery_interval_seconds=config.discovery_interval_seconds,
                sync_on_startup=config.sync_on_startup,
                evaluation_enabled=config.evaluation_schedule_enabled,
                evaluation_interval_seconds=config.evaluation_interval_seconds,
            ),
        )

        self._initialized = False
        self._running = False
        self._started_at: Optional[datetime] = None

    def _make_queue(self, name: str, retry: RetryPolicy) -> JobQueue:
        return JobQueue(
            name,
            retry_policy=retry,
            keep_completed=self.config.job_keep_completed,
            keep_failed=self.config.job_keep_failed,
            history=self.job_runs,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    async def __aenter__(self) -> "PipelineService":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """Connect to the database and make sure the schema exists."""
        if self._initialized:
            return
        await self._db.initialize()
        if not await self._db.health_check():
            raise RuntimeError("Database health check failed")
        await ensure_schema(self._db)
        self._initialized = True
        logger.info("Database: Connected")

    async def start(self) -> None:
        """Initialize, then start the job queues and the scheduler."""
        await self.initialize()
        await self.sync_queue.start()
        await self.evaluation_queue.start()
        await self.scheduler.start()
        self._running = True
        self._started_at = datetime.now(timezone.utc)
        logger.info(
            f"Pipeline started (providers={self.engine.provider_names or ['heuristic']})"
        )

    async def stop(self) -> None:
        """Stop the scheduler and queues, then release sessions and the pool."""
        self._running = False

        for name, component in (
            ("scheduler", self.scheduler),
            ("sync queue", self.sync_queue),
            ("evaluation queue", self.evaluation_queue),
        ):
            try:
                await component.stop()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Error stopping {name}: {e}")

        for name, closer in (
            ("indexer client", self._index.close),
            ("metadata fetcher", self._metadata.close),
            ("database", self._db.close),
        ):
            try:
                await closer()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Error closing {name}: {e}")

        self._initialized = False
        logger.info("Shutdown complete")

    # =========================================================================
    # Direct operations
    # =========================================================================

    async def sync_pass(self) -> SyncReport:
        return await self.reconciler.sync_pass()

    async def run_one_cycle(self) -> Optional[EvaluationOutcome]:
        return await self.engine.run_one_cycle()

    # =========================================================================
    # Job handlers
    # =========================================================================

    async def _handle_sync(self, job: Job) -> SyncReport:
        return await self.reconciler.sync_pass()

    async def _handle_market_sync(self, job: Job) -> dict[str, Any]:
        market_id = int(job.payload["market_id"])
        record = await self.reconciler.sync_market(market_id)
        return {"market_id": market_id, "found": record is not None}

    async def _handle_evaluation(self, job: Job) -> Optional[EvaluationOutcome]:
        return await self.engine.run_one_cycle()

    # =========================================================================
    # Health
    # =========================================================================

    async def health(self) -> dict[str, Any]:
        """Database connectivity, queue stats and the last sync report."""
        db_ok = await self._db.health_check()
        last = self.reconciler.last_report
        return {
            "status": "healthy" if db_ok else "unhealthy",
            "running": self._running,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "database": db_ok,
            "providers": self.engine.provider_names,
            "queues": {
                SYNC_QUEUE: self.sync_queue.stats(),
                EVALUATION_QUEUE: self.evaluation_queue.stats(),
            },
            "last_sync": last.to_dict() if last else None,
        }
