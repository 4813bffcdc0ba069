from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from agent.collectors.base import BaseSampler
from agent.models.snapshot import Snapshot

logger = logging.getLogger(__name__)

SnapshotHandler = Callable[[Snapshot], Awaitable[None]]
ErrorHandler = Callable[[Exception], Awaitable[None]]


class Scheduler:
    """Drives a sampler on a fixed-rate timer.

    Ticks fall on ``start + k * interval``. A sampler call that overruns
    one or more ticks causes those ticks to be skipped rather than queued,
    so at most one sampler call is ever in flight. Snapshots go to
    ``on_snapshot``; sampler failures go to ``on_error``.
    """

    def __init__(
        self,
        sampler: BaseSampler,
        interval: float,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.interval = interval
        self._sampler = sampler
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._running = False
        self._task: asyncio.Task | None = None
        self._ticks = 0
        self._coalesced = 0

    # ── lifecycle ────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Scheduler started (sampler=%s, interval=%.1fs)",
            self._sampler.name,
            self.interval,
        )

    async def stop(self) -> None:
        """Stop ticking now. Work already handed off is not awaited."""
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Scheduler stopped after %d ticks", self._ticks)

    # ── internals ───────────────────────────────────────

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        while self._running:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            await self._tick()

            next_tick += self.interval
            now = loop.time()
            if next_tick <= now:
                missed = int((now - next_tick) // self.interval) + 1
                next_tick += missed * self.interval
                self._coalesced += missed
                logger.warning(
                    "Sampling overran the interval, coalesced %d tick(s)", missed
                )

    async def _tick(self) -> None:
        self._ticks += 1
        try:
            snapshot = await self._sampler.collect()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._emit(self._on_error, exc)
            return
        await self._emit(self._on_snapshot, snapshot)

    async def _emit(self, handler, value) -> None:
        try:
            await handler(value)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Scheduler handler %s failed", handler)

    # ── introspection ───────────────────────────────────

    @property
    def running(self) -> bool:
        return self._running

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def coalesced(self) -> int:
        return self._coalesced
