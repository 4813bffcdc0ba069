from __future__ import annotations

from datetime import datetime, timezone

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_serializer, field_validator

U64_MAX = 2**64 - 1


class TransferCounters(BaseModel):
    """Cumulative byte counters across all network interfaces."""

    model_config = ConfigDict(frozen=True)

    bytes_sent: int = Field(default=0, ge=0, le=U64_MAX)
    bytes_received: int = Field(default=0, ge=0, le=U64_MAX)


class Snapshot(BaseModel):
    """Immutable result of one sampling pass over the host.

    Every field is always serialized. Listener sets are emitted as sorted
    lists so two equal snapshots produce byte-identical JSON.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: AwareDatetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    hostname: str
    os: str
    uptime: int = Field(ge=0, le=U64_MAX)  # seconds
    total_connections: int = Field(default=0, ge=0)
    open_tcp_ports: frozenset[str] = frozenset()
    open_udp_ports: frozenset[str] = frozenset()
    data_transfer_bytes: TransferCounters = Field(default_factory=TransferCounters)

    @field_validator("open_tcp_ports", "open_udp_ports", mode="before")
    @classmethod
    def _null_is_empty(cls, value: object) -> object:
        # Some agents encode an empty listener list as null
        return frozenset() if value is None else value

    @field_serializer("open_tcp_ports", "open_udp_ports")
    def _sorted_ports(self, value: frozenset[str]) -> list[str]:
        return sorted(value)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> Snapshot:
        return cls.model_validate_json(data)
