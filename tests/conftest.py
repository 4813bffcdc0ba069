from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from agent.models.snapshot import Snapshot, TransferCounters

_BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_snapshot():
    """Factory for distinct snapshots; ``seq`` becomes the uptime and the timestamp offset."""
    counter = itertools.count(1)

    def _make(seq: int | None = None, **overrides) -> Snapshot:
        n = next(counter) if seq is None else seq
        defaults = dict(
            timestamp=_BASE_TIME + timedelta(seconds=n),
            hostname="test-host",
            os="linux",
            uptime=n,
            total_connections=3,
            open_tcp_ports={"0.0.0.0:22"},
            open_udp_ports=set(),
            data_transfer_bytes=TransferCounters(bytes_sent=n, bytes_received=2 * n),
        )
        defaults.update(overrides)
        return Snapshot(**defaults)

    return _make
