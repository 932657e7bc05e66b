"""
Windowed concurrent fetching with partial-failure tolerance.

Keys are split into fixed-size windows. Every call in a window is issued
before any is awaited, the window settles completely, then the fetcher
pauses before the next one. A failed key is logged and dropped; the next
sync pass picks it up again because it is still undiscovered in the store.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Hashable, Optional, Sequence, TypeVar

from market_sync.errors import ConfigurationError

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class BatchResult(Generic[K, V]):
    """Outcome of a batch: values that arrived and the keys that failed."""
    successes: list[V] = field(default_factory=list)
    failures: dict[K, BaseException] = field(default_factory=dict)

    @property
    def failed_count(self) -> int:
        return len(self.failures)


class BatchFetcher:
    """
    Drives fetch_one over a key sequence in paced windows.

    Args:
        window_size: Concurrent calls per window (>= 1)
        inter_window_delay: Seconds to sleep between windows
    """

    def __init__(self, window_size: int = 5, inter_window_delay: float = 0.1):
        if window_size < 1:
            raise ConfigurationError(f"window_size must be >= 1, got {window_size}")
        if inter_window_delay < 0:
            raise ConfigurationError(
                f"inter_window_delay must be >= 0, got {inter_window_delay}"
            )
        self.window_size = window_size
        self.inter_window_delay = inter_window_delay

    async def fetch_all_detailed(
        self,
        keys: Sequence[K],
        fetch_one: Callable[[K], Awaitable[Optional[V]]],
    ) -> BatchResult[K, V]:
        """Fetch every key, keeping both successes and per-key failures."""
        result: BatchResult[K, V] = BatchResult()
        if not keys:
            return result

        windows = [
            keys[i:i + self.window_size]
            for i in range(0, len(keys), self.window_size)
        ]
        for index, window in enumerate(windows):
            outcomes = await asyncio.gather(
                *(fetch_one(key) for key in window),
                return_exceptions=True,
            )
            for key, outcome in zip(window, outcomes):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                if isinstance(outcome, BaseException):
                    logger.warning(f"Fetch failed for {key!r}: {outcome}")
                    result.failures[key] = outcome
                elif outcome is not None:
                    result.successes.append(outcome)

            if index < len(windows) - 1 and self.inter_window_delay > 0:
                await asyncio.sleep(self.inter_window_delay)

        if result.failures:
            logger.info(
                f"Batch finished: {len(result.successes)} ok, "
                f"{result.failed_count} failed of {len(keys)}"
            )
        return result

    async def fetch_all(
        self,
        keys: Sequence[K],
        fetch_one: Callable[[K], Awaitable[Optional[V]]],
    ) -> list[V]:
        """Fetch every key and return the successful values only."""
        result = await self.fetch_all_detailed(keys, fetch_one)
        return result.successes
