"""Tests for agent.engine.pipeline — drain-then-send delivery units."""

from __future__ import annotations

import asyncio
import json
import logging

import httpx
import pytest

from agent.engine.pipeline import DeliveryPipeline
from agent.engine.sender import RetryPolicy, Sender
from agent.engine.spool import SpoolQueue


class ScriptedEndpoint:
    """Fails while ``down`` is set; records the uptime of every request."""

    def __init__(self, down: bool = False, fail_first: int = 0) -> None:
        self.down = down
        self.fail_first = fail_first
        self.seen: list[int] = []
        self.gate: asyncio.Event | None = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.gate is not None:
            await self.gate.wait()
        self.seen.append(json.loads(request.content)["uptime"])
        if self.fail_first > 0:
            self.fail_first -= 1
            return httpx.Response(503)
        if self.down:
            return httpx.Response(503)
        return httpx.Response(200, json={"status": "ok"})


async def _no_sleep(delay: float) -> None:
    await asyncio.sleep(0)


def _pipeline(endpoint: ScriptedEndpoint, max_in_flight: int = 16) -> tuple[DeliveryPipeline, SpoolQueue]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(endpoint))
    sender = Sender(
        "https://collector.test/telemetry",
        policy=RetryPolicy(max_attempts=3, backoff_seconds=5.0),
        client=client,
        sleep=_no_sleep,
    )
    spool = SpoolQueue()
    return DeliveryPipeline(sender, spool, max_in_flight=max_in_flight), spool


# ── delivery ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_successful_delivery_leaves_spool_empty(make_snapshot):
    endpoint = ScriptedEndpoint()
    pipeline, spool = _pipeline(endpoint)

    await pipeline.submit(make_snapshot(1))
    await pipeline.join()

    assert endpoint.seen == [1]
    assert len(spool) == 0


@pytest.mark.asyncio
async def test_submit_does_not_block(make_snapshot):
    endpoint = ScriptedEndpoint()
    endpoint.gate = asyncio.Event()
    pipeline, _ = _pipeline(endpoint)

    await asyncio.wait_for(pipeline.submit(make_snapshot(1)), timeout=0.5)
    assert pipeline.in_flight == 1

    endpoint.gate.set()
    await pipeline.join()
    assert pipeline.in_flight == 0


@pytest.mark.asyncio
async def test_two_failures_then_success_creates_no_spool_entry(make_snapshot, caplog):
    endpoint = ScriptedEndpoint(fail_first=2)
    pipeline, spool = _pipeline(endpoint)

    with caplog.at_level(logging.WARNING):
        await pipeline.submit(make_snapshot(1))
        await pipeline.join()

    assert endpoint.seen == [1, 1, 1]
    assert len(spool) == 0
    failures = [r for r in caplog.records if "failed to send data" in r.getMessage()]
    assert len(failures) == 2


# ── spooling ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_exhausted_snapshot_is_spooled(make_snapshot):
    endpoint = ScriptedEndpoint(down=True)
    pipeline, spool = _pipeline(endpoint)

    await pipeline.submit(make_snapshot(1))
    await pipeline.join()

    assert endpoint.seen == [1, 1, 1]
    assert [s.uptime for s in spool.snapshot()] == [1]
    assert pipeline.spooled == 1


@pytest.mark.asyncio
async def test_next_unit_drains_backlog_before_sending(make_snapshot):
    endpoint = ScriptedEndpoint(down=True)
    pipeline, spool = _pipeline(endpoint)

    await pipeline.submit(make_snapshot(1))
    await pipeline.join()
    await pipeline.submit(make_snapshot(2))
    await pipeline.join()
    assert [s.uptime for s in spool.snapshot()] == [1, 2]

    endpoint.down = False
    endpoint.seen.clear()
    await pipeline.submit(make_snapshot(3))
    await pipeline.join()

    assert endpoint.seen == [1, 2, 3]
    assert len(spool) == 0


@pytest.mark.asyncio
async def test_drain_uses_single_attempt_per_item(make_snapshot):
    endpoint = ScriptedEndpoint(down=True)
    pipeline, spool = _pipeline(endpoint)

    await pipeline.submit(make_snapshot(1))
    await pipeline.join()
    endpoint.seen.clear()

    await pipeline.submit(make_snapshot(2))
    await pipeline.join()

    # one drain attempt for #1, then three retries for #2
    assert endpoint.seen == [1, 2, 2, 2]
    assert [s.uptime for s in spool.snapshot()] == [1, 2]


@pytest.mark.asyncio
async def test_overflow_beyond_in_flight_limit_is_spooled(make_snapshot):
    endpoint = ScriptedEndpoint()
    endpoint.gate = asyncio.Event()
    pipeline, spool = _pipeline(endpoint, max_in_flight=2)

    for i in range(1, 5):
        await pipeline.submit(make_snapshot(i))

    assert pipeline.in_flight == 2
    assert [s.uptime for s in spool.snapshot()] == [3, 4]

    endpoint.gate.set()
    await pipeline.join()
    await pipeline.submit(make_snapshot(5))
    await pipeline.join()

    assert sorted(endpoint.seen) == [1, 2, 3, 4, 5]
    assert len(spool) == 0


@pytest.mark.asyncio
async def test_concurrent_units_deliver_everything(make_snapshot):
    endpoint = ScriptedEndpoint()
    pipeline, spool = _pipeline(endpoint)

    await asyncio.gather(*(pipeline.submit(make_snapshot(i)) for i in range(1, 11)))
    await pipeline.join()

    assert sorted(endpoint.seen) == list(range(1, 11))
    assert len(spool) == 0


# ── errors / lifecycle ──────────────────────────────────


@pytest.mark.asyncio
async def test_report_error_logs_and_does_not_raise(caplog):
    pipeline, _ = _pipeline(ScriptedEndpoint())
    with caplog.at_level(logging.ERROR, logger="agent.engine.pipeline"):
        await pipeline.report_error(RuntimeError("sampler broke"))
    assert "Collection error: sampler broke" in caplog.text


@pytest.mark.asyncio
async def test_close_abandons_inflight_units(make_snapshot):
    endpoint = ScriptedEndpoint()
    endpoint.gate = asyncio.Event()
    pipeline, _ = _pipeline(endpoint)

    await pipeline.submit(make_snapshot(1))
    await asyncio.wait_for(pipeline.close(), timeout=0.5)
    assert pipeline.in_flight == 1

    endpoint.gate.set()
    await pipeline.join()


def test_invalid_in_flight_limit():
    client = httpx.AsyncClient(transport=httpx.MockTransport(ScriptedEndpoint()))
    sender = Sender("https://collector.test/telemetry", client=client)
    with pytest.raises(ValueError):
        DeliveryPipeline(sender, SpoolQueue(), max_in_flight=0)


@pytest.mark.asyncio
async def test_undelivered_includes_snapshots_held_by_drain(make_snapshot):
    endpoint = ScriptedEndpoint(down=True)
    pipeline, spool = _pipeline(endpoint)
    await pipeline.submit(make_snapshot(1))
    await pipeline.join()
    assert pipeline.undelivered == 1

    endpoint.gate = asyncio.Event()
    await pipeline.submit(make_snapshot(2))
    await asyncio.sleep(0.05)  # unit is now blocked resending #1 from the drain

    assert pipeline.spooled == 0
    assert pipeline.undelivered == 1

    endpoint.gate.set()
    await pipeline.join()
    assert pipeline.undelivered == 2
