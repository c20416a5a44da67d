"""Pydantic schema for the per-run session configuration."""
import re
from typing import Optional, Pattern, Tuple
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from flakeswarm.core.enums import CleanupMode
from flakeswarm.core.exceptions import FleetValidationError
from flakeswarm.services.classifier import compile_match


class SessionConfig(BaseModel):
    """
    Immutable configuration shared by every session in a fleet.

    Environment overrides are kept as KEY=VALUE strings in the order given;
    duplicates are allowed and all of them are forwarded.
    """

    instance_type: str = Field(..., min_length=1, description="Worker instance type")
    command: Tuple[str, ...] = Field(default=(), description="Command and arguments to run")
    env: Tuple[str, ...] = Field(default=(), description="KEY=VALUE environment overrides")
    instances: int = Field(default=10, ge=1, description="Number of parallel sessions")
    deflake: int = Field(default=1, ge=0, description="Attempt budget for create/provision")
    cleanup: CleanupMode = Field(default=CleanupMode.OFF, description="Worker cleanup mode")
    keep_going: bool = Field(default=False, description="Keep other sessions running after a match")
    match: Optional[str] = Field(default=None, description="Regexp a real failure must match")
    verbosity: int = Field(default=2, ge=0, description="0 is quiet, 2 dumps unmatched output")

    model_config = ConfigDict(frozen=True)

    @field_validator("env")
    @classmethod
    def _check_env(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        for entry in value:
            key, sep, _ = entry.partition("=")
            if not sep or not key:
                raise ValueError(f"environment variable must look like KEY=VALUE, got {entry!r}")
        return value

    @field_validator("match")
    @classmethod
    def _check_match(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        try:
            re.compile(value.encode("utf-8"))
        except re.error as e:
            raise ValueError(f"compiling regexp: {e}") from e
        return value

    @classmethod
    def build(cls, **kwargs) -> "SessionConfig":
        """
        Construct a config, reporting problems as FleetValidationError.

        Raises:
            FleetValidationError: If any field is invalid
        """
        try:
            return cls(**kwargs)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise FleetValidationError(problems) from e

    @property
    def max_attempts(self) -> int:
        return max(1, self.deflake)

    def compiled_match(self) -> Optional[Pattern[bytes]]:
        return compile_match(self.match)
