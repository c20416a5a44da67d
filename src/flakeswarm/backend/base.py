"""Worker backend contract and the values it exchanges."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Sequence, Set
from flakeswarm.core.enums import ExecutionStatus


@dataclass(frozen=True)
class WorkerHandle:
    """
    Reference to one remote worker.

    The name is the backend's opaque instance id; it is unique within a run
    and is also used to namespace artifact file names.
    """

    name: str
    instance_type: str

    def __str__(self) -> str:
        return self.name


@dataclass
class RunOutcome:
    """
    Result of one command execution on one worker.

    Output is the combined stdout/stderr as raw bytes.
    """

    handle: WorkerHandle
    status: ExecutionStatus
    output: bytes = b""
    exit_code: Optional[int] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCEEDED


class WorkerBackend(ABC):
    """
    Remote worker provisioning and execution service.

    Every method may take an arbitrary amount of time. Implementations raise
    BackendError for infrastructure problems; a non-zero exit of the user's
    command is reported through RunOutcome and never raised.
    """

    @abstractmethod
    async def list_instance_types(self) -> Set[str]:
        """Return the instance types the backend can create."""

    @abstractmethod
    async def create(self, instance_type: str) -> WorkerHandle:
        """Create a new worker of the given type."""

    @abstractmethod
    async def provision(self, handle: WorkerHandle) -> None:
        """Sync the unit of work (e.g. a source tree) onto the worker."""

    @abstractmethod
    async def execute(
        self, handle: WorkerHandle, env: Sequence[str], command: Sequence[str]
    ) -> RunOutcome:
        """Run a command on the worker with KEY=VALUE env overrides, in order."""

    @abstractmethod
    async def list(self) -> List[WorkerHandle]:
        """List existing workers, of every type."""

    @abstractmethod
    async def destroy(self, handle: WorkerHandle) -> None:
        """Tear the worker down."""

    @abstractmethod
    async def fetch_archive(self, handle: WorkerHandle, sink: BinaryIO) -> None:
        """Stream a gzipped tarball of the worker's working directory into sink."""
