from __future__ import annotations

import platform
import socket
import time

import psutil

from agent.collectors.base import BaseSampler, CollectError
from agent.models.snapshot import Snapshot, TransferCounters


class HostCollector(BaseSampler):
    """Samples uptime, listening sockets and interface byte counters."""

    name = "host_collector"

    async def collect(self) -> Snapshot:
        try:
            hostname = socket.gethostname()
        except OSError as exc:
            raise CollectError(f"get hostname: {exc}") from exc

        try:
            uptime = max(0, int(time.time() - psutil.boot_time()))
        except (psutil.Error, OSError) as exc:
            raise CollectError(f"get host info: {exc}") from exc

        try:
            connections = psutil.net_connections(kind="inet")
        except (psutil.Error, OSError) as exc:
            raise CollectError(f"get network connections: {exc}") from exc

        tcp_ports, udp_ports = self._listening_addresses(connections)
        counters = self._transfer_counters()

        return Snapshot(
            hostname=hostname,
            os=platform.system().lower(),
            uptime=uptime,
            total_connections=len(connections),
            open_tcp_ports=tcp_ports,
            open_udp_ports=udp_ports,
            data_transfer_bytes=counters,
        )

    @staticmethod
    def _listening_addresses(connections) -> tuple[frozenset[str], frozenset[str]]:
        """Return deduplicated ``ip:port`` sets for TCP listeners and bound UDP sockets."""
        tcp: set[str] = set()
        udp: set[str] = set()
        for conn in connections:
            if not conn.laddr:
                continue
            addr = f"{conn.laddr.ip}:{conn.laddr.port}"
            if conn.type == socket.SOCK_STREAM:
                if conn.status == psutil.CONN_LISTEN:
                    tcp.add(addr)
            elif conn.type == socket.SOCK_DGRAM:
                # UDP has no LISTEN state; an unconnected bound socket is a listener
                if not conn.raddr:
                    udp.add(addr)
        return frozenset(tcp), frozenset(udp)

    @staticmethod
    def _transfer_counters() -> TransferCounters:
        try:
            io = psutil.net_io_counters(pernic=False)
        except (psutil.Error, OSError) as exc:
            raise CollectError(f"get IO counters: {exc}") from exc
        if io is None:
            raise CollectError("get data transfer rates: no network interfaces found")
        return TransferCounters(bytes_sent=io.bytes_sent, bytes_received=io.bytes_recv)
