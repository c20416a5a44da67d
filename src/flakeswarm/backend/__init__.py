from flakeswarm.backend.base import RunOutcome, WorkerBackend, WorkerHandle
from flakeswarm.backend.gomote import GomoteBackend

__all__ = ["GomoteBackend", "RunOutcome", "WorkerBackend", "WorkerHandle"]
