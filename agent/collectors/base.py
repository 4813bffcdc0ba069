from __future__ import annotations

from abc import ABC, abstractmethod

from agent.models.snapshot import Snapshot


class CollectError(Exception):
    """A sampling pass failed; the tick is skipped."""


class BaseSampler(ABC):
    """Abstract producer of host snapshots.

    Implementations must be callable repeatedly, read system state only,
    and return quickly (the scheduler coalesces ticks on the assumption
    that a pass takes well under one interval).
    """

    name: str = "base"

    @abstractmethod
    async def collect(self) -> Snapshot:
        """Take one sample. Raise ``CollectError`` on failure."""
        ...
