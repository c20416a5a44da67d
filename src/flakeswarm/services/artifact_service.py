"""Persistence of failure output and worker archives."""
import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Optional, Union
from flakeswarm.backend.base import WorkerBackend, WorkerHandle
from flakeswarm.core.exceptions import BackendError

logger = logging.getLogger(__name__)


def _write_temp(prefix: str, data: bytes) -> Path:
    with tempfile.NamedTemporaryFile(prefix=prefix, suffix=".out", delete=False) as f:
        f.write(data)
        return Path(f.name)


class ArtifactService:
    """
    Writes artifacts for failing runs.

    Every file name is derived from the worker name, so concurrent sessions
    never collide. Nothing here raises: write problems are logged and the
    corresponding path comes back as None.
    """

    def __init__(self, artifact_dir: Union[str, Path] = "."):
        """
        Initialize artifact service.

        Args:
            artifact_dir: Directory receiving <worker>.out and <worker>.tar.gz
        """
        self.artifact_dir = Path(artifact_dir)

    def output_path(self, handle: WorkerHandle) -> Path:
        return self.artifact_dir / f"{handle.name}.out"

    def archive_path(self, handle: WorkerHandle) -> Path:
        return self.artifact_dir / f"{handle.name}.tar.gz"

    async def save_unmatched(self, handle: WorkerHandle, output: bytes) -> Optional[Path]:
        """
        Keep the output of an unmatched failure in a temp file.

        Args:
            handle: Worker the output came from
            output: Raw combined output

        Returns:
            Optional[Path]: Temp file path, or None if it could not be written
        """
        try:
            path = await asyncio.to_thread(_write_temp, f"{handle.name}-", output)
        except OSError as e:
            logger.warning(f"Failed to write output from {handle} to temp file: {e}")
            return None
        logger.info(f"Wrote output of {handle} to {path}.")
        return path

    async def save_output(self, handle: WorkerHandle, output: bytes) -> Optional[Path]:
        """
        Write the output of a matched failure to <worker>.out.

        If the file cannot be written the output is dumped to the log so it
        is not lost.
        """
        path = self.output_path(handle)
        try:
            await asyncio.to_thread(path.write_bytes, output)
        except OSError as e:
            logger.error(f"Failed to write output of {handle} to {path}: {e}")
            logger.error(
                f"Dumping output from {handle}:\n{output.decode('utf-8', errors='replace')}"
            )
            return None
        logger.info(f"Wrote output of {handle} to {path}.")
        return path

    async def save_archive(self, handle: WorkerHandle, backend: WorkerBackend) -> Optional[Path]:
        """
        Download the worker's working directory to <worker>.tar.gz.

        A partially written archive is removed on failure.
        """
        path = self.archive_path(handle)
        try:
            with open(path, "wb") as sink:
                await backend.fetch_archive(handle, sink)
        except (OSError, BackendError) as e:
            logger.error(f"Failed to download archive for {handle}: {e}")
            try:
                path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.warning(f"Failed to remove partial archive {path}: {cleanup_error}")
            return None
        logger.info(f"Downloaded archive of {handle} to {path}.")
        return path
