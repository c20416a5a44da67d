"""Failure classification for run outcomes."""
import re
from typing import Optional, Pattern
from flakeswarm.backend.base import RunOutcome
from flakeswarm.core.enums import ExecutionStatus, Verdict
from flakeswarm.core.exceptions import BackendError


def compile_match(pattern: Optional[str]) -> Optional[Pattern[bytes]]:
    """Compile a user supplied failure pattern for matching raw output bytes."""
    if not pattern:
        return None
    return re.compile(pattern.encode("utf-8"))


def classify(outcome: RunOutcome, pattern: Optional[Pattern[bytes]] = None) -> Verdict:
    """
    Decide what a run outcome means for the hunt.

    Pure function of its inputs. Rules apply in order:

    1. A successful run is not a failure.
    2. An infrastructure error is raised, not classified.
    3. Output containing the worker's own name means the worker was lost.
    4. With a pattern, output that does not match is an unmatched failure.
    5. Anything else is the failure we are looking for.

    Args:
        outcome: Result of one execution
        pattern: Optional compiled bytes pattern a real failure must match

    Returns:
        Verdict: Classification of the outcome

    Raises:
        BackendError: If the outcome is an infrastructure error
    """
    if outcome.status == ExecutionStatus.SUCCEEDED:
        return Verdict.NOT_A_FAILURE

    if outcome.status == ExecutionStatus.INFRASTRUCTURE_ERROR:
        raise BackendError(
            outcome.error_message or f"running command on {outcome.handle} failed"
        )

    # Heuristic, not a real detector: when a worker drops or reboots, the
    # remote shell tends to echo a prompt carrying the instance name.
    if outcome.handle.name.encode("utf-8") in outcome.output:
        return Verdict.LOST_WORKER

    if pattern is not None and pattern.search(outcome.output) is None:
        return Verdict.UNMATCHED_FAILURE

    return Verdict.MATCHED_FAILURE
