from __future__ import annotations

import logging
from collections import deque

from fastapi import APIRouter

from agent.models.snapshot import Snapshot
from server.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


class IngestLog:
    """Counts accepted snapshots and keeps the most recent ones."""

    def __init__(self, limit: int = 100) -> None:
        self.received = 0
        self.recent: deque[Snapshot] = deque(maxlen=limit)

    def record(self, snapshot: Snapshot) -> None:
        self.received += 1
        self.recent.append(snapshot)

    def clear(self) -> None:
        self.received = 0
        self.recent.clear()


ingest_log = IngestLog(limit=settings.recent_limit)


@router.post("/telemetry")
async def receive_telemetry(snapshot: Snapshot) -> dict:
    logger.info("Received telemetry data from %s:", snapshot.hostname)
    logger.info("  - OS: %s", snapshot.os)
    logger.info("  - Uptime: %d seconds", snapshot.uptime)
    logger.info("  - Total Connections: %d", snapshot.total_connections)
    logger.info("  - Open TCP Ports: %s", sorted(snapshot.open_tcp_ports))
    logger.info("  - Data Transfer: %s", snapshot.data_transfer_bytes.model_dump())
    ingest_log.record(snapshot)
    return {"status": "ok"}


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "received": ingest_log.received}


@router.get("/api/recent")
async def recent(limit: int = 20) -> list[dict]:
    items = list(ingest_log.recent)[-limit:] if limit > 0 else []
    return [s.model_dump(mode="json") for s in reversed(items)]
