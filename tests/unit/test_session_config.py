"""Unit tests for SessionConfig validation."""
import pytest
from pydantic import ValidationError
from flakeswarm.core.enums import CleanupMode
from flakeswarm.core.exceptions import FleetValidationError
from flakeswarm.schemas.session import SessionConfig


class TestSessionConfig:
    """Test SessionConfig defaults and validation."""

    def test_defaults(self):
        """Test defaults mirror the command line defaults."""
        config = SessionConfig(instance_type="linux-amd64", command=["true"])

        assert config.instances == 10
        assert config.deflake == 1
        assert config.cleanup == CleanupMode.OFF
        assert config.keep_going is False
        assert config.match is None
        assert config.verbosity == 2
        assert config.command == ("true",)

    def test_env_order_and_duplicates_preserved(self):
        """Test env overrides keep their order, duplicates included."""
        env = ["GOFLAGS=-v", "GOARCH=amd64", "GOFLAGS=-race"]

        config = SessionConfig(instance_type="linux-amd64", env=env)

        assert config.env == ("GOFLAGS=-v", "GOARCH=amd64", "GOFLAGS=-race")

    def test_env_value_may_contain_equals(self):
        """Test only the first '=' separates key from value."""
        config = SessionConfig(instance_type="linux-amd64", env=["GODEBUG=gctrace=1"])

        assert config.env == ("GODEBUG=gctrace=1",)

    @pytest.mark.parametrize("entry", ["NOEQUALS", "=value"])
    def test_env_entry_must_be_key_value(self, entry):
        """Test malformed env entries are rejected."""
        with pytest.raises(ValidationError, match="KEY=VALUE"):
            SessionConfig(instance_type="linux-amd64", env=[entry])

    def test_instances_must_be_positive(self):
        """Test a fleet needs at least one session."""
        with pytest.raises(ValidationError):
            SessionConfig(instance_type="linux-amd64", instances=0)

    def test_invalid_regexp_rejected(self):
        """Test a pattern that does not compile is rejected."""
        with pytest.raises(ValidationError, match="compiling regexp"):
            SessionConfig(instance_type="linux-amd64", match="(unclosed")

    def test_empty_match_means_no_pattern(self):
        """Test an empty pattern is normalized to None."""
        config = SessionConfig(instance_type="linux-amd64", match="")

        assert config.match is None
        assert config.compiled_match() is None

    def test_compiled_match(self):
        """Test the pattern compiles for bytes output."""
        config = SessionConfig(instance_type="linux-amd64", match="FATAL")

        assert config.compiled_match().search(b"FATAL: oops") is not None

    def test_config_is_immutable(self):
        """Test configs cannot be modified after construction."""
        config = SessionConfig(instance_type="linux-amd64")

        with pytest.raises(ValidationError):
            config.instances = 3

    @pytest.mark.parametrize("deflake,attempts", [(0, 1), (1, 1), (4, 4)])
    def test_max_attempts(self, deflake, attempts):
        """Test the deflake budget never drops below one attempt."""
        config = SessionConfig(instance_type="linux-amd64", deflake=deflake)

        assert config.max_attempts == attempts

    def test_build_wraps_validation_errors(self):
        """Test build reports problems as FleetValidationError."""
        with pytest.raises(FleetValidationError, match="instances"):
            SessionConfig.build(instance_type="linux-amd64", instances=0)

    def test_build_returns_config(self):
        """Test build returns a normal config when valid."""
        config = SessionConfig.build(instance_type="linux-amd64", cleanup="exit")

        assert config.cleanup == CleanupMode.EXIT
