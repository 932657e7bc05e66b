"""
Scheduler - recurring triggers for discovery and evaluation.

Both triggers go through the job queues, never run work inline, so a
slow pass and a tick can never execute the same job concurrently.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from .triggers import PipelineTriggers, TriggerAck

logger = logging.getLogger(__name__)


@dataclass
class SchedulerConfig:
    """Configuration for recurring triggers."""

    # Discovery (sync pass)
    discovery_enabled: bool = True
    discovery_interval_seconds: float = 300  # 5 minutes
    sync_on_startup: bool = True

    # One-record evaluation cycle
    evaluation_enabled: bool = True
    evaluation_interval_seconds: float = 30


class Scheduler:
    """
    Fires the discovery and evaluation triggers on fixed intervals.

    Usage:
        scheduler = Scheduler(triggers, SchedulerConfig())
        await scheduler.start()
        # ... service runs ...
        await scheduler.stop()
    """

    def __init__(self, triggers: PipelineTriggers, config: Optional[SchedulerConfig] = None) -> None:
        self._triggers = triggers
        self._config = config or SchedulerConfig()

        self._running = False
        self._tasks: List[asyncio.Task] = []
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start enabled trigger loops."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting scheduler...")
        self._running = True
        self._stop_event.clear()

        if self._config.discovery_enabled:
            if self._config.sync_on_startup:
                await self._fire("discovery", self._triggers.trigger_sync)
            self._tasks.append(asyncio.create_task(
                self._loop(
                    "discovery",
                    self._config.discovery_interval_seconds,
                    self._triggers.trigger_sync,
                ),
                name="discovery_trigger",
            ))
            logger.info(
                f"Started discovery trigger "
                f"(interval={self._config.discovery_interval_seconds}s)"
            )
        else:
            logger.info("Discovery trigger disabled")

        if self._config.evaluation_enabled:
            self._tasks.append(asyncio.create_task(
                self._loop(
                    "evaluation",
                    self._config.evaluation_interval_seconds,
                    self._triggers.trigger_evaluation,
                ),
                name="evaluation_trigger",
            ))
            logger.info(
                f"Started evaluation trigger "
                f"(interval={self._config.evaluation_interval_seconds}s)"
            )

        logger.info(f"Scheduler started: {len(self._tasks)} triggers")

    async def stop(self) -> None:
        """Stop all trigger loops."""
        if not self._running:
            return

        logger.info("Stopping scheduler...")
        self._running = False
        self._stop_event.set()

        for task in self._tasks:
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        logger.info("Scheduler stopped")

    async def _fire(self, name: str, trigger: Callable[[], Awaitable[TriggerAck]]) -> None:
        ack = await trigger()
        logger.debug(f"{name} tick: {ack.message}")

    async def _loop(
        self,
        name: str,
        interval: float,
        trigger: Callable[[], Awaitable[TriggerAck]],
    ) -> None:
        while self._running:
            try:
                # Wait for interval or stop
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                    break  # Stop requested
                except asyncio.TimeoutError:
                    pass

                if not self._running:
                    break

                await self._fire(name, trigger)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in {name} trigger: {e}")
