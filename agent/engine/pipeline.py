from __future__ import annotations

import asyncio
import logging

from agent.engine.sender import Sender
from agent.engine.spool import SpoolQueue
from agent.models.snapshot import Snapshot

logger = logging.getLogger(__name__)


class DeliveryPipeline:
    """Fans snapshots out to concurrent delivery units.

    Each unit drains the spool through ``Sender.send_once`` and then sends
    its own snapshot with the retry policy; an exhausted snapshot is
    spooled. At most ``max_in_flight`` units run at once. A snapshot that
    arrives while the limit is reached goes straight to the spool and is
    picked up by the next drain.
    """

    def __init__(
        self,
        sender: Sender,
        spool: SpoolQueue,
        max_in_flight: int = 16,
    ) -> None:
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be >= 1")
        self._sender = sender
        self._spool = spool
        self._max_in_flight = max_in_flight
        self._tasks: set[asyncio.Task] = set()

    # ── intake ───────────────────────────────────────────

    async def submit(self, snapshot: Snapshot) -> None:
        """Hand off one snapshot without waiting for its delivery."""
        logger.debug(
            "Collected data from %s at %s", snapshot.hostname, snapshot.timestamp.isoformat()
        )
        if len(self._tasks) >= self._max_in_flight:
            logger.warning(
                "%d deliveries in flight, spooling snapshot for later", len(self._tasks)
            )
            self._spool.enqueue(snapshot)
            return

        task = asyncio.create_task(self._deliver(snapshot))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def report_error(self, exc: Exception) -> None:
        logger.error("Collection error: %s", exc)

    # ── lifecycle ────────────────────────────────────────

    async def join(self) -> None:
        """Wait for the units dispatched so far to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Release the transport. Units still in flight are abandoned."""
        if self._tasks:
            logger.info("Abandoning %d in-flight deliveries", len(self._tasks))
        await self._sender.aclose()

    # ── internals ───────────────────────────────────────

    async def _deliver(self, snapshot: Snapshot) -> None:
        await self._spool.drain(self._sender.send_once)
        try:
            await self._sender.send(snapshot)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Failed to report data, queued for later delivery: %s", exc)
            self._spool.enqueue(snapshot)

    # ── introspection ───────────────────────────────────

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    @property
    def spooled(self) -> int:
        return len(self._spool)

    @property
    def undelivered(self) -> int:
        """Spooled snapshots, including any a running drain is still holding."""
        return self._spool.outstanding
