from __future__ import annotations

import asyncio
import logging
import ssl
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from agent.models.snapshot import Snapshot

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class SendError(Exception):
    """Delivery of one snapshot failed; carries the last underlying reason."""

    def __init__(self, reason: str, attempts: int = 1) -> None:
        super().__init__(reason)
        self.reason = reason
        self.attempts = attempts


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay bounded retry: no jitter, no exponential growth."""

    max_attempts: int = 3
    backoff_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")


class Sender:
    """POSTs snapshots as JSON to the collector endpoint.

    ``send`` walks Attempting(1..max) and either returns (Succeeded) or
    raises ``SendError`` (Exhausted). It never touches the spool; the caller
    decides what to do with an exhausted snapshot.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        policy: RetryPolicy | None = None,
        ssl_context: ssl.SSLContext | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.endpoint = endpoint
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                verify=ssl_context if ssl_context is not None else True,
                timeout=timeout,
            )
        self._client = client

    async def send(self, snapshot: Snapshot) -> None:
        body = snapshot.to_json()
        max_attempts = self.policy.max_attempts
        last: SendError | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                await self._post(body)
            except SendError as exc:
                last = exc
                logger.warning(
                    "Attempt %d/%d failed to send data: %s", attempt, max_attempts, exc
                )
                if attempt < max_attempts:
                    await self._sleep(self.policy.backoff_seconds)
                continue
            logger.info("Data reported successfully (attempt %d).", attempt)
            return

        raise SendError(
            f"all {max_attempts} attempts failed: {last.reason}", attempts=max_attempts
        )

    async def send_once(self, snapshot: Snapshot) -> None:
        """Single attempt, no retry. Raises ``SendError`` on failure."""
        await self._post(snapshot.to_json())

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, body: str) -> None:
        try:
            resp = await self._client.post(
                self.endpoint,
                content=body,
                headers={"Content-Type": "application/json"},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise SendError(f"post request: {exc!r}") from exc

        if resp.status_code != httpx.codes.OK:
            raise SendError(
                f"server returned non-OK status: {resp.status_code} {resp.reason_phrase}"
            )
