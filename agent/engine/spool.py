from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from typing import Awaitable, Callable

from agent.models.snapshot import Snapshot

logger = logging.getLogger(__name__)

Resend = Callable[[Snapshot], Awaitable[None]]


class SpoolQueue:
    """In-memory backlog of snapshots that could not be delivered.

    The lock guards only structural changes (one append, or the swap at the
    start of a drain); resends happen outside it. When ``max_size`` is set
    the buffer behaves as a ring: a full spool drops its oldest entry to make
    room. ``max_size=None`` keeps every entry.
    """

    def __init__(self, max_size: int | None = 10_000) -> None:
        if max_size is not None and max_size <= 0:
            raise ValueError("max_size must be > 0 or None")
        self._max_size = max_size
        self._items: deque[Snapshot] = deque()
        self._lock = threading.Lock()
        self._dropped = 0
        self._held = 0  # taken by running drains, not yet settled

    # ── mutation ────────────────────────────────────────

    def enqueue(self, snapshot: Snapshot) -> None:
        with self._lock:
            dropped = self._append(snapshot)
            size = len(self._items)
        if dropped is not None:
            logger.warning(
                "Spool full (%d), dropped oldest snapshot from %s",
                self._max_size,
                dropped.timestamp.isoformat(),
            )
        logger.info("Data added to offline queue. Current size: %d", size)

    async def drain(self, resend: Resend) -> int:
        """Offer every spooled snapshot to ``resend`` once.

        Returns the number delivered. Failed items go back on the spool in
        their original order, after anything enqueued during the pass.
        """
        with self._lock:
            if not self._items:
                return 0
            pending = self._items
            self._items = deque()
            self._held += len(pending)

        logger.info("Attempting to process offline queue of size: %d", len(pending))

        delivered = 0
        failed: list[Snapshot] = []
        items = list(pending)
        for index, snapshot in enumerate(items):
            try:
                await resend(snapshot)
            except asyncio.CancelledError:
                # Put back what this pass has not settled yet
                self._settle(failed + items[index:])
                raise
            except Exception as exc:
                logger.warning("Failed to send queued data: %s", exc)
                failed.append(snapshot)
            else:
                delivered += 1
                with self._lock:
                    self._held -= 1

        self._settle(failed)
        logger.info(
            "Offline queue pass done: %d delivered, %d re-queued",
            delivered,
            len(failed),
        )
        return delivered

    # ── internals ───────────────────────────────────────

    def _append(self, snapshot: Snapshot) -> Snapshot | None:
        dropped = None
        if self._max_size is not None and len(self._items) >= self._max_size:
            dropped = self._items.popleft()
            self._dropped += 1
        self._items.append(snapshot)
        return dropped

    def _settle(self, snapshots: list[Snapshot]) -> None:
        """Return drained snapshots to the spool and release them from the held count."""
        with self._lock:
            self._held -= len(snapshots)
            for snapshot in snapshots:
                self._append(snapshot)

    # ── introspection ───────────────────────────────────

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def outstanding(self) -> int:
        """Spooled snapshots plus those a running drain has not settled yet."""
        with self._lock:
            return len(self._items) + self._held

    def snapshot(self) -> list[Snapshot]:
        """Copy of the current contents, oldest first."""
        with self._lock:
            return list(self._items)

    @property
    def max_size(self) -> int | None:
        return self._max_size

    @property
    def dropped(self) -> int:
        return self._dropped
