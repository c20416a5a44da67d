"""Lifecycle of a single worker: create, provision, run until something happens."""
import logging
from typing import List, Optional
from flakeswarm.backend.base import RunOutcome, WorkerBackend, WorkerHandle
from flakeswarm.core.cancellation import CancellationToken
from flakeswarm.core.enums import CleanupMode, SessionState, Verdict
from flakeswarm.core.exceptions import BackendError, LostWorkerError, RetryCancelledError
from flakeswarm.observability import metrics
from flakeswarm.schemas.session import SessionConfig
from flakeswarm.services.artifact_service import ArtifactService
from flakeswarm.services.classifier import classify
from flakeswarm.services.retry_service import with_retry
from flakeswarm.services.state_machine import SessionStateMachine
from flakeswarm.worker.models import FailureRecord, SessionResult

logger = logging.getLogger(__name__)


class WorkerSession:
    """
    Drives one worker through CREATING → PROVISIONING → RUNNING → STOPPED_*.

    Setup steps run under the deflake retry budget; giving up on setup is not
    an error, the fleet just runs one worker short. Cancellation is checked
    before setup, between setup attempts, at the top of every run loop
    iteration and right after each execute returns. An execute already in
    flight is left to finish.
    """

    def __init__(
        self,
        index: int,
        config: SessionConfig,
        backend: WorkerBackend,
        token: CancellationToken,
        artifacts: ArtifactService,
        retry_delay_seconds: float = 0.0,
    ):
        """
        Initialize worker session.

        Args:
            index: Position of this session in the fleet, for logging
            config: Shared fleet configuration
            backend: Worker backend client
            token: Fleet-wide cancellation signal
            artifacts: Where failure output and archives are written
            retry_delay_seconds: Pause between setup attempts
        """
        self.index = index
        self.config = config
        self.backend = backend
        self.token = token
        self.artifacts = artifacts
        self.retry_delay_seconds = retry_delay_seconds

        # State
        self.state = SessionState.CREATING
        self.handle: Optional[WorkerHandle] = None
        self.failures: List[FailureRecord] = []
        self.error: Optional[BaseException] = None
        self.runs = 0

    async def run(self) -> SessionResult:
        """
        Run the session to a terminal state.

        Never raises; errors end the session in STOPPED_ERROR and are carried
        on the result.

        Returns:
            SessionResult: Terminal state, handle, failures and error
        """
        metrics.sessions_active.inc()
        try:
            try:
                await self._lifecycle()
            except Exception as e:
                logger.error(f"Session {self.index} crashed: {e}", exc_info=True)
                self._finish(SessionState.STOPPED_ERROR, error=e)
            finally:
                await self._teardown()
        finally:
            metrics.sessions_active.dec()

        metrics.sessions_finished_total.labels(state=str(self.state)).inc()
        return SessionResult(
            index=self.index,
            state=self.state,
            handle=self.handle,
            failures=list(self.failures),
            error=self.error,
            runs=self.runs,
        )

    def _transition(self, new_state: SessionState) -> None:
        SessionStateMachine.validate_transition(self.state, new_state)
        self.state = new_state

    def _finish(self, state: SessionState, error: Optional[BaseException] = None) -> None:
        if SessionStateMachine.is_terminal(self.state):
            return
        self._transition(state)
        self.error = error
        if state == SessionState.STOPPED_MATCHED_FAILURE:
            self.token.cancel(f"failure found on {self.handle}")
        elif state == SessionState.STOPPED_ERROR:
            self.token.cancel(f"session {self.index} failed: {error}")

    async def _lifecycle(self) -> None:
        instance_type = self.config.instance_type

        if self.token.is_cancelled:
            self._finish(SessionState.STOPPED_NO_FAILURE)
            return

        try:
            self.handle = await with_retry(
                lambda: self.backend.create(instance_type),
                self.config.max_attempts,
                delay_seconds=self.retry_delay_seconds,
                description=f"creating {instance_type} instance",
                token=self.token,
            )
        except RetryCancelledError as e:
            logger.info(f"Session {self.index}: {e}")
            self._finish(SessionState.STOPPED_NO_FAILURE)
            return
        except BackendError as e:
            if self.token.is_cancelled:
                self._finish(SessionState.STOPPED_NO_FAILURE)
                return
            logger.error(f"Session {self.index}: giving up on creating instance: {e}")
            metrics.setup_failures_total.labels(stage="create").inc()
            self._finish(SessionState.STOPPED_NO_FAILURE)
            return
        metrics.workers_created_total.labels(instance_type=instance_type).inc()
        logger.info(f"Created instance {self.handle}...")

        self._transition(SessionState.PROVISIONING)
        if self.token.is_cancelled:
            self._finish(SessionState.STOPPED_NO_FAILURE)
            return

        handle = self.handle
        try:
            await with_retry(
                lambda: self.backend.provision(handle),
                self.config.max_attempts,
                delay_seconds=self.retry_delay_seconds,
                description=f"pushing to instance {handle}",
                token=self.token,
            )
        except RetryCancelledError as e:
            logger.info(f"Session {self.index}: {e}")
            self._finish(SessionState.STOPPED_NO_FAILURE)
            return
        except BackendError as e:
            if self.token.is_cancelled:
                self._finish(SessionState.STOPPED_NO_FAILURE)
                return
            logger.error(f"Session {self.index}: giving up on pushing to {handle}: {e}")
            metrics.setup_failures_total.labels(stage="provision").inc()
            self._finish(SessionState.STOPPED_NO_FAILURE)
            return
        logger.info(f"Pushed to {handle}.")

        self._transition(SessionState.RUNNING)
        await self._run_loop(handle)

    async def _run_loop(self, handle: WorkerHandle) -> None:
        pattern = self.config.compiled_match()
        while True:
            if self.token.is_cancelled:
                self._finish(SessionState.STOPPED_NO_FAILURE)
                return

            logger.info(f"Running command on {handle}.")
            try:
                outcome = await self.backend.execute(handle, self.config.env, self.config.command)
            except BackendError as e:
                # Fleet already stopping for another reason.
                if self.token.is_cancelled:
                    logger.info(f"Ignoring error from {handle} after cancellation: {e}")
                    self._finish(SessionState.STOPPED_NO_FAILURE)
                    return
                self._finish(SessionState.STOPPED_ERROR, error=e)
                return
            self.runs += 1

            if self.token.is_cancelled:
                self._finish(SessionState.STOPPED_NO_FAILURE)
                return

            try:
                verdict = classify(outcome, pattern)
            except BackendError as e:
                metrics.runs_total.labels(
                    instance_type=handle.instance_type, verdict="INFRASTRUCTURE_ERROR"
                ).inc()
                self._finish(SessionState.STOPPED_ERROR, error=e)
                return
            metrics.runs_total.labels(
                instance_type=handle.instance_type, verdict=str(verdict)
            ).inc()

            if verdict == Verdict.NOT_A_FAILURE:
                continue
            if verdict == Verdict.UNMATCHED_FAILURE:
                await self._handle_unmatched(outcome)
                continue
            if verdict == Verdict.LOST_WORKER:
                self._finish(SessionState.STOPPED_ERROR, error=LostWorkerError(handle.name))
                return

            await self._handle_matched(outcome)
            return

    async def _handle_unmatched(self, outcome: RunOutcome) -> None:
        handle = outcome.handle
        if self.config.verbosity < 2:
            logger.info(f"Unmatched failure on {handle}.")
        else:
            text = outcome.output.decode("utf-8", errors="replace")
            logger.info(f"Unmatched failure on {handle}:\n{text}")
        await self.artifacts.save_unmatched(handle, outcome.output)

    async def _handle_matched(self, outcome: RunOutcome) -> None:
        handle = outcome.handle
        logger.info(f"Discovered failure on {handle}.")
        record = FailureRecord(handle=handle, output=outcome.output)
        record.output_path = await self.artifacts.save_output(handle, outcome.output)
        record.archive_path = await self.artifacts.save_archive(handle, self.backend)
        self.failures.append(record)

        if self.config.keep_going:
            logger.info(f"Keeping going after failure on {handle}.")
            self._finish(SessionState.STOPPED_NO_FAILURE)
        else:
            self._finish(SessionState.STOPPED_MATCHED_FAILURE)

    async def _teardown(self) -> None:
        if self.config.cleanup != CleanupMode.EXIT or self.handle is None:
            return
        try:
            await self.backend.destroy(self.handle)
        except Exception as e:
            logger.error(f"Failed to destroy {self.handle}: {e}")
            return
        metrics.workers_destroyed_total.labels(instance_type=self.handle.instance_type).inc()
        logger.info(f"Destroyed {self.handle}.")
