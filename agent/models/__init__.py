from .snapshot import Snapshot, TransferCounters, U64_MAX

__all__ = [
    "Snapshot",
    "TransferCounters",
    "U64_MAX",
]
