from .base import BaseSampler, CollectError
from .host_collector import HostCollector

__all__ = [
    "BaseSampler",
    "CollectError",
    "HostCollector",
]
