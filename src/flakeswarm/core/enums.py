"""Core enumerations for flakeswarm."""
from enum import Enum


class CleanupMode(str, Enum):
    """
    When workers get destroyed.

    - OFF: Never destroy anything
    - START: Destroy every existing worker of the target type before the run
    - EXIT: Each session destroys the worker it created when it ends
    """

    OFF = "off"
    START = "start"
    EXIT = "exit"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class ExecutionStatus(str, Enum):
    """Outcome of a single remote command execution."""

    SUCCEEDED = "SUCCEEDED"
    COMMAND_FAILED = "COMMAND_FAILED"
    INFRASTRUCTURE_ERROR = "INFRASTRUCTURE_ERROR"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class Verdict(str, Enum):
    """
    Classification of a run outcome.

    - NOT_A_FAILURE: Command succeeded, run it again
    - UNMATCHED_FAILURE: Command failed but not the way we are hunting for
    - MATCHED_FAILURE: The failure we are looking for
    - LOST_WORKER: The worker itself went away
    """

    NOT_A_FAILURE = "NOT_A_FAILURE"
    UNMATCHED_FAILURE = "UNMATCHED_FAILURE"
    MATCHED_FAILURE = "MATCHED_FAILURE"
    LOST_WORKER = "LOST_WORKER"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class SessionState(str, Enum):
    """
    Worker session lifecycle states.

    State flow:
        CREATING → PROVISIONING → RUNNING → STOPPED_NO_FAILURE
                                          → STOPPED_MATCHED_FAILURE
                                          → STOPPED_ERROR
        (CREATING and PROVISIONING may stop early as well)
    """

    CREATING = "CREATING"
    PROVISIONING = "PROVISIONING"
    RUNNING = "RUNNING"
    STOPPED_NO_FAILURE = "STOPPED_NO_FAILURE"
    STOPPED_MATCHED_FAILURE = "STOPPED_MATCHED_FAILURE"
    STOPPED_ERROR = "STOPPED_ERROR"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class FleetStatus(str, Enum):
    """Aggregate outcome of a fleet run."""

    NO_FAILURE = "NO_FAILURE"
    MATCHED_FAILURE = "MATCHED_FAILURE"
    ERROR = "ERROR"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value
