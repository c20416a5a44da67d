"""Session state machine logic for managing valid session state transitions."""
from typing import Dict, Set
from flakeswarm.core.enums import SessionState
from flakeswarm.core.exceptions import InvalidStateTransitionError

_STOPPED = {
    SessionState.STOPPED_NO_FAILURE,
    SessionState.STOPPED_MATCHED_FAILURE,
    SessionState.STOPPED_ERROR,
}


class SessionStateMachine:
    """
    Defines valid state transitions for a worker session.

    State Diagram:
        CREATING → PROVISIONING → RUNNING → STOPPED_*
        CREATING and PROVISIONING may also stop directly
        (setup exhausted its retries, cancellation, error).
    """

    TRANSITIONS: Dict[SessionState, Set[SessionState]] = {
        SessionState.CREATING: {SessionState.PROVISIONING} | _STOPPED,
        SessionState.PROVISIONING: {SessionState.RUNNING} | _STOPPED,
        SessionState.RUNNING: set(_STOPPED),
        SessionState.STOPPED_NO_FAILURE: set(),  # Terminal state
        SessionState.STOPPED_MATCHED_FAILURE: set(),  # Terminal state
        SessionState.STOPPED_ERROR: set(),  # Terminal state
    }

    TERMINAL_STATES = set(_STOPPED)

    @classmethod
    def can_transition(cls, from_state: SessionState, to_state: SessionState) -> bool:
        """
        Check if transition from from_state to to_state is valid.

        Args:
            from_state: Current session state
            to_state: Desired session state

        Returns:
            bool: True if transition is valid, False otherwise
        """
        return to_state in cls.TRANSITIONS.get(from_state, set())

    @classmethod
    def validate_transition(cls, from_state: SessionState, to_state: SessionState) -> None:
        """
        Validate state transition and raise exception if invalid.

        Raises:
            InvalidStateTransitionError: If transition is not valid
        """
        if not cls.can_transition(from_state, to_state):
            raise InvalidStateTransitionError(
                f"Invalid state transition: {from_state} -> {to_state}"
            )

    @classmethod
    def is_terminal(cls, state: SessionState) -> bool:
        return state in cls.TERMINAL_STATES
