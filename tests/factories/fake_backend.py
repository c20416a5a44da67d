"""In-memory worker backend for tests."""
import asyncio
from typing import BinaryIO, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from flakeswarm.backend.base import RunOutcome, WorkerBackend, WorkerHandle
from flakeswarm.core.enums import ExecutionStatus
from flakeswarm.core.exceptions import BackendError

# (exit_code, output); exit_code None means an infrastructure error
Step = Tuple[Optional[int], bytes]


class FakeBackend(WorkerBackend):
    """
    Scripted backend.

    Each created worker gets the next name from `names` (or worker-N). Runs
    on a worker replay its script from `scripts` in order, then fall back to
    `default_step` forever.
    """

    def __init__(
        self,
        instance_types: Iterable[str] = ("linux-amd64",),
        existing: Iterable[WorkerHandle] = (),
        names: Optional[Iterable[str]] = None,
        scripts: Optional[Dict[str, List[Step]]] = None,
        default_step: Step = (0, b"ok\n"),
        create_failures: int = 0,
        provision_failures: int = 0,
        archive_bytes: bytes = b"\x1f\x8bfake-tarball",
        archive_error: Optional[BaseException] = None,
        destroy_error: Optional[BaseException] = None,
        on_execute: Optional[Callable[[WorkerHandle, int], None]] = None,
        on_create: Optional[Callable[[int], None]] = None,
        on_provision: Optional[Callable[[WorkerHandle, int], None]] = None,
        execute_error: Optional[BaseException] = None,
    ):
        self.instance_types = set(instance_types)
        self.workers: List[WorkerHandle] = list(existing)
        self._names = iter(names) if names is not None else None
        self.scripts = {name: list(steps) for name, steps in (scripts or {}).items()}
        self.default_step = default_step
        self.create_failures = create_failures
        self.provision_failures = provision_failures
        self.archive_bytes = archive_bytes
        self.archive_error = archive_error
        self.destroy_error = destroy_error
        self.on_execute = on_execute
        self.on_create = on_create
        self.on_provision = on_provision
        self.execute_error = execute_error

        # Call records
        self.create_calls = 0
        self.provision_calls = 0
        self.created: List[WorkerHandle] = []
        self.provisioned: List[WorkerHandle] = []
        self.destroyed: List[WorkerHandle] = []
        self.executions: List[Tuple[str, Tuple[str, ...], Tuple[str, ...]]] = []
        self.runs_by_worker: Dict[str, int] = {}
        self.archives_fetched: List[WorkerHandle] = []

    async def list_instance_types(self) -> Set[str]:
        await asyncio.sleep(0)
        return set(self.instance_types)

    async def create(self, instance_type: str) -> WorkerHandle:
        await asyncio.sleep(0)
        self.create_calls += 1
        if self.on_create is not None:
            self.on_create(self.create_calls)
        if self.create_failures > 0:
            self.create_failures -= 1
            raise BackendError("create: exit status 1: <no output>")
        if self._names is not None:
            name = next(self._names)
        else:
            name = f"worker-{len(self.created)}"
        handle = WorkerHandle(name=name, instance_type=instance_type)
        self.created.append(handle)
        self.workers.append(handle)
        return handle

    async def provision(self, handle: WorkerHandle) -> None:
        await asyncio.sleep(0)
        self.provision_calls += 1
        if self.on_provision is not None:
            self.on_provision(handle, self.provision_calls)
        if self.provision_failures > 0:
            self.provision_failures -= 1
            raise BackendError(f"push to {handle}: exit status 1: <no output>")
        self.provisioned.append(handle)

    async def execute(
        self, handle: WorkerHandle, env: Sequence[str], command: Sequence[str]
    ) -> RunOutcome:
        await asyncio.sleep(0)
        count = self.runs_by_worker.get(handle.name, 0) + 1
        self.runs_by_worker[handle.name] = count
        self.executions.append((handle.name, tuple(env), tuple(command)))
        if self.on_execute is not None:
            self.on_execute(handle, count)
        if self.execute_error is not None:
            raise self.execute_error

        script = self.scripts.get(handle.name)
        exit_code, output = script.pop(0) if script else self.default_step
        if exit_code is None:
            return RunOutcome(
                handle=handle,
                status=ExecutionStatus.INFRASTRUCTURE_ERROR,
                output=output,
                error_message=f"connection to {handle} reset",
            )
        status = ExecutionStatus.SUCCEEDED if exit_code == 0 else ExecutionStatus.COMMAND_FAILED
        return RunOutcome(handle=handle, status=status, output=output, exit_code=exit_code)

    async def list(self) -> List[WorkerHandle]:
        await asyncio.sleep(0)
        return list(self.workers)

    async def destroy(self, handle: WorkerHandle) -> None:
        await asyncio.sleep(0)
        if self.destroy_error is not None:
            raise self.destroy_error
        self.destroyed.append(handle)
        self.workers = [w for w in self.workers if w.name != handle.name]

    async def fetch_archive(self, handle: WorkerHandle, sink: BinaryIO) -> None:
        await asyncio.sleep(0)
        if self.archive_error is not None:
            raise self.archive_error
        sink.write(self.archive_bytes)
        self.archives_fetched.append(handle)
