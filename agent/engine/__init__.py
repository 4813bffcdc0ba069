from .spool import SpoolQueue
from .sender import RetryPolicy, Sender, SendError
from .scheduler import Scheduler
from .pipeline import DeliveryPipeline
from .shutdown import ShutdownCoordinator

__all__ = [
    "SpoolQueue",
    "RetryPolicy",
    "Sender",
    "SendError",
    "Scheduler",
    "DeliveryPipeline",
    "ShutdownCoordinator",
]
