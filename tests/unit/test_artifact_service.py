"""Unit tests for artifact persistence."""
import logging
import pytest
from flakeswarm.backend.base import WorkerHandle
from flakeswarm.core.exceptions import BackendError
from flakeswarm.services.artifact_service import ArtifactService
from tests.factories.fake_backend import FakeBackend

HANDLE = WorkerHandle(name="inst-7", instance_type="linux-amd64")


@pytest.mark.asyncio
class TestArtifactService:
    """Test artifact naming and best-effort writes."""

    async def test_save_output_writes_named_file(self, artifacts, artifact_dir):
        """Test matched output lands in <worker>.out."""
        path = await artifacts.save_output(HANDLE, b"FATAL: oops\n")

        assert path == artifact_dir / "inst-7.out"
        assert path.read_bytes() == b"FATAL: oops\n"

    async def test_save_output_failure_dumps_to_log(self, tmp_path, caplog):
        """Test an unwritable output file is logged with the output itself."""
        artifacts = ArtifactService(tmp_path / "does-not-exist")

        with caplog.at_level(logging.ERROR):
            path = await artifacts.save_output(HANDLE, b"precious output")

        assert path is None
        assert "precious output" in caplog.text

    async def test_save_archive_writes_tarball(self, artifacts, artifact_dir):
        """Test the archive is streamed into <worker>.tar.gz."""
        backend = FakeBackend(archive_bytes=b"\x1f\x8bdata")

        path = await artifacts.save_archive(HANDLE, backend)

        assert path == artifact_dir / "inst-7.tar.gz"
        assert path.read_bytes() == b"\x1f\x8bdata"

    async def test_save_archive_failure_removes_partial_file(self, artifacts, artifact_dir):
        """Test a failed download leaves no archive behind."""
        backend = FakeBackend(archive_error=BackendError("gettar: exit status 1"))

        path = await artifacts.save_archive(HANDLE, backend)

        assert path is None
        assert not (artifact_dir / "inst-7.tar.gz").exists()

    async def test_save_unmatched_uses_worker_prefixed_temp_file(self, artifacts):
        """Test unmatched output goes to a temp file namespaced by worker."""
        path = await artifacts.save_unmatched(HANDLE, b"noise")

        try:
            assert path.name.startswith("inst-7-")
            assert path.read_bytes() == b"noise"
        finally:
            path.unlink()

    async def test_save_unmatched_failure_is_not_raised(self, artifacts, monkeypatch):
        """Test temp file problems are logged, not raised."""

        def broken(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(
            "flakeswarm.services.artifact_service.tempfile.NamedTemporaryFile", broken
        )

        assert await artifacts.save_unmatched(HANDLE, b"noise") is None
