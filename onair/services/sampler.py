"""
onair.services.sampler — Periodic Milestone Sampler
====================================================

Some milestones depend on aggregate state rather than on a single
action: the registered-listener count and the top-liked track.  This
task samples both on a fixed interval.  A failed sample is logged and
retried on the next tick, never immediately.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from onair.database.engine import run_db
from onair.services.leaderboard_service import check_track_rank_one
from onair.services.listener_service import sample_total_listeners

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from onair.engine.cache import SettingsCache

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_INTERVAL = 300


class MilestoneSampler:
    """Background task that samples aggregate milestones."""

    def __init__(
        self,
        engine: Engine,
        cache: SettingsCache,
        interval: float | None = None,
    ) -> None:
        self._engine = engine
        self._cache = cache
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def interval(self) -> float:
        if self._interval is not None:
            return self._interval
        return self._cache.get_int("sampler.interval_seconds", DEFAULT_SAMPLE_INTERVAL)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sample_once(self) -> int:
        """Run one sample; return how many milestones it created."""
        created = await run_db(sample_total_listeners, self._engine, self._cache)
        created += await run_db(check_track_rank_one, self._engine, self._cache)
        if created:
            logger.info("Sampler recorded %d milestones", len(created))
        return len(created)

    def start(self) -> None:
        """Start sampling on the running loop.  No-op if already started."""
        if self.running:
            return

        async def _sample_loop() -> None:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.sample_once()
                except Exception:
                    logger.exception("Milestone sample failed")

        self._task = asyncio.get_running_loop().create_task(
            _sample_loop(), name="milestone-sampler"
        )
        logger.info("Milestone sampler started (every %ss)", self.interval)

    async def stop(self) -> None:
        """Cancel the task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
