"""Host telemetry agent.

Samples the local host on a fixed interval and delivers each snapshot to
the collector endpoint, spooling snapshots that cannot be delivered.

Usage:
    telemetry-agent                          # configs/config.json
    telemetry-agent --config /etc/telemetry/config.json --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import ssl
import sys

from agent.collectors import BaseSampler, HostCollector
from agent.config import DEFAULT_CONFIG_FILE, ConfigError, Settings, load_settings
from agent.engine import (
    DeliveryPipeline,
    RetryPolicy,
    Scheduler,
    Sender,
    ShutdownCoordinator,
    SpoolQueue,
)
from agent.transport import TransportConfigError, build_ssl_context

logger = logging.getLogger(__name__)


def build_pipeline(
    settings: Settings,
    ssl_context: ssl.SSLContext | None = None,
    **sender_kwargs,
) -> DeliveryPipeline:
    sender = Sender(
        settings.endpoint,
        policy=RetryPolicy(
            max_attempts=settings.max_attempts,
            backoff_seconds=settings.retry_backoff,
        ),
        ssl_context=ssl_context,
        timeout=settings.request_timeout,
        **sender_kwargs,
    )
    spool = SpoolQueue(max_size=settings.spool_max_size)
    return DeliveryPipeline(sender, spool, max_in_flight=settings.max_in_flight)


async def run(
    settings: Settings,
    pipeline: DeliveryPipeline,
    shutdown: ShutdownCoordinator,
    sampler: BaseSampler | None = None,
) -> int:
    """Run until ``shutdown`` fires. Returns the process exit code."""
    scheduler = Scheduler(
        sampler or HostCollector(),
        interval=settings.collection_interval,
        on_snapshot=pipeline.submit,
        on_error=pipeline.report_error,
    )

    await scheduler.start()
    logger.info("Telemetry agent started, reporting to %s", settings.endpoint)
    try:
        await shutdown.wait()
    finally:
        logger.info("Shutting down agent gracefully...")
        await scheduler.stop()
        undelivered = pipeline.undelivered
        if undelivered:
            logger.warning("Discarding %d undelivered snapshot(s)", undelivered)
        await pipeline.close()
    return 0


async def _serve(settings: Settings, ssl_context: ssl.SSLContext) -> int:
    shutdown = ShutdownCoordinator()
    shutdown.install()
    try:
        return await run(settings, build_pipeline(settings, ssl_context), shutdown)
    finally:
        shutdown.uninstall()


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Host telemetry agent")
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_FILE),
        help="path to the JSON configuration file",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="override the configured log level (DEBUG, INFO, ...)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=(args.log_level or "INFO").upper(),
        format="%(asctime)s [%(name)s] %(message)s",
    )
    logger.info("Starting Telemetry Agent...")

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        logger.error("Failed to load configuration: %s", exc)
        return 1
    if args.log_level is None:
        logging.getLogger().setLevel(settings.log_level.upper())

    try:
        ssl_context = build_ssl_context(settings)
    except TransportConfigError as exc:
        logger.error("Failed to set up TLS client: %s", exc)
        return 1

    return asyncio.run(_serve(settings, ssl_context))


if __name__ == "__main__":
    sys.exit(main())
