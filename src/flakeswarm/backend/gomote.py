"""Worker backend that shells out to the gomote CLI."""
import asyncio
import logging
import os
from typing import BinaryIO, List, Optional, Sequence, Set, Tuple
from flakeswarm.backend.base import RunOutcome, WorkerBackend, WorkerHandle
from flakeswarm.backend.parsing import parse_instance_list, parse_instance_types
from flakeswarm.config import get_settings
from flakeswarm.core.enums import ExecutionStatus
from flakeswarm.core.exceptions import BackendError

logger = logging.getLogger(__name__)

ARCHIVE_CHUNK_SIZE = 64 * 1024


class GomoteBackend(WorkerBackend):
    """
    Drive remote workers through the `gomote` command line tool.

    Each operation spawns one subprocess. The child inherits this process's
    environment, which is how `gomote push` finds the tree to upload (see
    Settings.ROOT_PATH_VAR).
    """

    def __init__(self, command: Optional[str] = None, root_path_var: Optional[str] = None):
        """
        Initialize gomote backend.

        Args:
            command: gomote binary to invoke (defaults to Settings.BACKEND_COMMAND)
            root_path_var: Environment variable push syncs from
                (defaults to Settings.ROOT_PATH_VAR)
        """
        settings = get_settings()
        self.command = command or settings.BACKEND_COMMAND
        self.root_path_var = root_path_var or settings.ROOT_PATH_VAR

    async def list_instance_types(self) -> Set[str]:
        # gomote exits non-zero when create has no arguments; only its
        # output matters here.
        _, output, _ = await self._run("create", combine_output=True)
        return set(parse_instance_types(output.decode("utf-8", errors="replace")))

    async def create(self, instance_type: str) -> WorkerHandle:
        returncode, stdout, stderr = await self._run("create", instance_type)
        self._check("create", returncode, stderr)
        name = stdout.decode("utf-8", errors="replace").strip()
        if not name:
            raise BackendError(f"`{self.command} create` returned no instance name")
        return WorkerHandle(name=name, instance_type=instance_type)

    async def provision(self, handle: WorkerHandle) -> None:
        if not os.environ.get(self.root_path_var):
            logger.warning(
                f"{self.root_path_var} is not set; push to {handle} may upload nothing useful"
            )
        returncode, _, stderr = await self._run("push", handle.name)
        self._check(f"push to {handle}", returncode, stderr)

    async def execute(
        self, handle: WorkerHandle, env: Sequence[str], command: Sequence[str]
    ) -> RunOutcome:
        args = ["run"]
        for value in env:
            args.extend(["-e", value])
        args.append(handle.name)
        args.extend(command)

        try:
            returncode, output, _ = await self._run(*args, combine_output=True)
        except BackendError as e:
            return RunOutcome(
                handle=handle,
                status=ExecutionStatus.INFRASTRUCTURE_ERROR,
                error_message=str(e),
            )

        if returncode == 0:
            status = ExecutionStatus.SUCCEEDED
        elif returncode > 0:
            status = ExecutionStatus.COMMAND_FAILED
        else:
            # Negative return codes mean the gomote process itself was killed.
            return RunOutcome(
                handle=handle,
                status=ExecutionStatus.INFRASTRUCTURE_ERROR,
                output=output,
                exit_code=returncode,
                error_message=f"`{self.command} run` on {handle} killed by signal {-returncode}",
            )
        return RunOutcome(handle=handle, status=status, output=output, exit_code=returncode)

    async def list(self) -> List[WorkerHandle]:
        returncode, output, _ = await self._run("list", combine_output=True)
        self._check("list", returncode, output)
        return [
            WorkerHandle(name=name, instance_type=instance_type)
            for name, instance_type in parse_instance_list(output.decode("utf-8", errors="replace"))
        ]

    async def destroy(self, handle: WorkerHandle) -> None:
        returncode, _, stderr = await self._run("destroy", handle.name)
        self._check(f"destroy {handle}", returncode, stderr)

    async def fetch_archive(self, handle: WorkerHandle, sink: BinaryIO) -> None:
        process = await self._spawn("gettar", handle.name, combine_output=False)
        stderr_task = asyncio.create_task(process.stderr.read())
        try:
            while True:
                chunk = await process.stdout.read(ARCHIVE_CHUNK_SIZE)
                if not chunk:
                    break
                await asyncio.to_thread(sink.write, chunk)
        except BaseException:
            # Nobody drains stdout any more; stop the child instead of leaking it.
            stderr_task.cancel()
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
            await process.wait()
            raise
        stderr = await stderr_task
        returncode = await process.wait()
        self._check(f"gettar from {handle}", returncode, stderr)

    async def _spawn(self, *args: str, combine_output: bool):
        try:
            return await asyncio.create_subprocess_exec(
                self.command,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT if combine_output else asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise BackendError(
                f"backend command not found: {self.command}", transient=False
            ) from e
        except OSError as e:
            raise BackendError(f"backend command failed to start: {e}") from e

    async def _run(self, *args: str, combine_output: bool = False) -> Tuple[int, bytes, bytes]:
        """
        Run one gomote subcommand to completion.

        Returns:
            Tuple[int, bytes, bytes]: Return code, stdout and stderr. Stderr is
            empty when combine_output folds it into stdout.
        """
        process = await self._spawn(*args, combine_output=combine_output)
        stdout, stderr = await process.communicate()
        return process.returncode, stdout or b"", stderr or b""

    def _check(self, what: str, returncode: int, stderr: bytes) -> None:
        if returncode == 0:
            return
        detail = stderr.decode("utf-8", errors="replace").strip()
        detail = f"<stderr>: {detail}" if detail else "<no output>"
        raise BackendError(
            f"{self.command} {what}: exit status {returncode}: {detail}"
        )
