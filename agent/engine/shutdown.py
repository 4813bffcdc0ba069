from __future__ import annotations

import asyncio
import logging
import signal

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownCoordinator:
    """Turns SIGINT/SIGTERM into a one-shot event the main task can await."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._signal: signal.Signals | None = None
        self._installed: list[signal.Signals] = []

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        loop = loop or asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.trigger, sig)
            except NotImplementedError:
                # Event loops without add_signal_handler (Windows)
                signal.signal(
                    sig, lambda s, _f: loop.call_soon_threadsafe(self.trigger, signal.Signals(s))
                )
            self._installed.append(sig)

    def uninstall(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        loop = loop or asyncio.get_running_loop()
        for sig in self._installed:
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                signal.signal(sig, signal.SIG_DFL)
        self._installed.clear()

    def trigger(self, sig: signal.Signals | None = None) -> None:
        if self._event.is_set():
            return
        self._signal = sig
        logger.info("Received %s, shutting down", sig.name if sig else "shutdown request")
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    @property
    def triggered(self) -> bool:
        return self._event.is_set()

    @property
    def received_signal(self) -> signal.Signals | None:
        return self._signal
