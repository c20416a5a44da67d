"""Shared pytest fixtures for all tests."""
import pytest
from flakeswarm.config import get_settings
from flakeswarm.core.cancellation import CancellationToken
from flakeswarm.schemas.session import SessionConfig
from flakeswarm.services.artifact_service import ArtifactService


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """
    Reset the cached Settings before and after each test.

    Tests that tweak environment variables then see a fresh Settings.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def artifact_dir(tmp_path):
    """Directory receiving <worker>.out and <worker>.tar.gz files."""
    path = tmp_path / "artifacts"
    path.mkdir()
    return path


@pytest.fixture
def artifacts(artifact_dir):
    return ArtifactService(artifact_dir)


@pytest.fixture
def token():
    return CancellationToken()


@pytest.fixture
def make_config():
    """
    Factory for SessionConfig with test-friendly defaults.

    Returns:
        Callable[..., SessionConfig]
    """

    def _make(**overrides) -> SessionConfig:
        values = {
            "instance_type": "linux-amd64",
            "command": ("go", "test", "-run", "TestFlaky"),
            "instances": 1,
            "verbosity": 1,
        }
        values.update(overrides)
        return SessionConfig(**values)

    return _make
