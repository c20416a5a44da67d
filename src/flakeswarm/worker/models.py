"""Session and fleet result classes."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from flakeswarm.backend.base import WorkerHandle
from flakeswarm.core.enums import FleetStatus, SessionState


@dataclass
class FailureRecord:
    """
    A matched failure and the artifacts captured for it.

    A path is None when that artifact could not be written.
    """

    handle: WorkerHandle
    output: bytes
    output_path: Optional[Path] = None
    archive_path: Optional[Path] = None

    @property
    def artifacts_complete(self) -> bool:
        return self.output_path is not None and self.archive_path is not None


@dataclass
class SessionResult:
    """Terminal state of one worker session."""

    index: int
    state: SessionState
    handle: Optional[WorkerHandle] = None
    failures: List[FailureRecord] = field(default_factory=list)
    error: Optional[BaseException] = None
    runs: int = 0


@dataclass
class FleetResult:
    """
    Aggregate outcome of a fleet run.

    Failures include those recorded by keep-going sessions, which end
    STOPPED_NO_FAILURE but still count towards MATCHED_FAILURE here.
    """

    status: FleetStatus
    sessions: List[SessionResult] = field(default_factory=list)
    failures: List[FailureRecord] = field(default_factory=list)
    error: Optional[BaseException] = None
    interrupted: bool = False

    @property
    def artifacts_complete(self) -> bool:
        return all(failure.artifacts_complete for failure in self.failures)
