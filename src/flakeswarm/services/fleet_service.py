"""Fleet orchestration: fan sessions out, stop them all on the first real failure."""
import asyncio
import logging
from typing import List, Optional
from flakeswarm.backend.base import WorkerBackend
from flakeswarm.core.cancellation import CancellationToken
from flakeswarm.core.enums import CleanupMode, FleetStatus, SessionState
from flakeswarm.core.exceptions import FleetValidationError
from flakeswarm.schemas.session import SessionConfig
from flakeswarm.services.artifact_service import ArtifactService
from flakeswarm.worker.models import FleetResult, SessionResult
from flakeswarm.worker.session import WorkerSession

logger = logging.getLogger(__name__)

INTERRUPT_REASON = "interrupted"


class FleetService:
    """
    Runs a fleet of worker sessions against one backend.

    Sessions share a single CancellationToken. The first session to stop
    with a matched failure or an error sets it, and the others wind down at
    their next check. Sessions are never cancelled at the task level, so the
    service always waits for all of them.
    """

    def __init__(
        self,
        backend: WorkerBackend,
        artifacts: ArtifactService,
        token: Optional[CancellationToken] = None,
        retry_delay_seconds: float = 0.0,
    ):
        """
        Initialize fleet service.

        Args:
            backend: Worker backend client
            artifacts: Artifact writer shared by all sessions
            token: Cancellation signal; pass one in to wire it to signal handlers
            retry_delay_seconds: Pause between setup attempts in each session
        """
        self.backend = backend
        self.artifacts = artifacts
        self.token = token or CancellationToken()
        self.retry_delay_seconds = retry_delay_seconds

    async def validate_instance_type(self, instance_type: str) -> None:
        """
        Check the instance type against what the backend offers.

        Raises:
            FleetValidationError: If the type is unknown
            BackendError: If the backend cannot be queried
        """
        types = await self.backend.list_instance_types()
        if instance_type not in types:
            raise FleetValidationError(f"invalid instance type: {instance_type}")

    async def clean_up_instances(self, instance_type: str) -> int:
        """
        Destroy every existing worker of the given type, leaving others alone.

        Returns:
            int: Number of workers destroyed

        Raises:
            BackendError: If listing or destroying fails
        """
        destroyed = 0
        for handle in await self.backend.list():
            if handle.instance_type != instance_type:
                continue
            logger.info(f"Destroying {handle}.")
            await self.backend.destroy(handle)
            destroyed += 1
        return destroyed

    async def run(self, config: SessionConfig) -> FleetResult:
        """
        Run the fleet until every session stops.

        Args:
            config: Fleet configuration

        Returns:
            FleetResult: Aggregated outcome

        Raises:
            FleetValidationError: If the run is rejected before any session starts
            BackendError: If validation or start-up cleanup cannot reach the backend
        """
        await self.validate_instance_type(config.instance_type)

        if config.cleanup == CleanupMode.START:
            await self.clean_up_instances(config.instance_type)

        if not config.command:
            # Nothing to run; a bare cleanup request is still a valid invocation.
            if config.cleanup != CleanupMode.START:
                raise FleetValidationError("expected a command")
            return FleetResult(status=FleetStatus.NO_FAILURE)

        sessions = [
            WorkerSession(
                index=i,
                config=config,
                backend=self.backend,
                token=self.token,
                artifacts=self.artifacts,
                retry_delay_seconds=self.retry_delay_seconds,
            )
            for i in range(config.instances)
        ]
        logger.info(f"Launching {len(sessions)} {config.instance_type} sessions")

        tasks = [asyncio.create_task(session.run()) for session in sessions]
        results: List[SessionResult] = []
        for next_done in asyncio.as_completed(tasks):
            results.append(await next_done)

        return self._aggregate(results)

    def _aggregate(self, results: List[SessionResult]) -> FleetResult:
        """Fold session results, in completion order, into one fleet result."""
        interrupted = self.token.reason == INTERRUPT_REASON
        failures = [failure for result in results for failure in result.failures]

        error: Optional[BaseException] = None
        for result in results:
            if result.state != SessionState.STOPPED_ERROR:
                continue
            if error is None:
                error = result.error
            else:
                logger.warning(f"Discarding later error from session {result.index}: {result.error}")

        if error is not None:
            status = FleetStatus.ERROR
        elif failures:
            status = FleetStatus.MATCHED_FAILURE
        else:
            status = FleetStatus.NO_FAILURE

        return FleetResult(
            status=status,
            sessions=results,
            failures=failures,
            error=error,
            interrupted=interrupted,
        )
