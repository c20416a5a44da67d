"""CLI entry point for running a flakeswarm fleet."""
import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional
from flakeswarm.backend.gomote import GomoteBackend
from flakeswarm.config import Settings, get_settings
from flakeswarm.core.cancellation import CancellationToken
from flakeswarm.core.enums import CleanupMode, FleetStatus
from flakeswarm.core.exceptions import FlakeswarmException, FleetValidationError
from flakeswarm.observability.metrics import init_system_info, start_metrics_server
from flakeswarm.schemas.session import SessionConfig
from flakeswarm.services.artifact_service import ArtifactService
from flakeswarm.services.fleet_service import INTERRUPT_REASON, FleetService
from flakeswarm.worker.models import FleetResult

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130

# Spellings accepted for -flag=value booleans
TRUE_VALUES = ("1", "t", "T", "true", "TRUE", "True")
FALSE_VALUES = ("0", "f", "F", "false", "FALSE", "False")

DESCRIPTION = (
    "flakeswarm creates a pool of workers and executes a command on them "
    "until one of them fails.\n\n"
    "Note that flakeswarm does not tear down workers unless -clean=exit is given."
)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser; flags follow the single-dash style of the gomote tools."""
    parser = argparse.ArgumentParser(
        prog="flakeswarm",
        description=DESCRIPTION,
        usage="%(prog)s [flags] [instance type] [command]",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument("-i", dest="instances", type=int, default=10,
                        help="number of instances to run in parallel")
    parser.add_argument("-e", dest="env", action="append", default=[], metavar="VAR=value",
                        help="an environment variable to use on the worker, may be specified multiple times")
    parser.add_argument("-match", dest="match", default=None, metavar="REGEXP",
                        help="stop only if a failure's output matches this regexp")
    parser.add_argument("-clean", dest="cleanup", type=CleanupMode, default=CleanupMode.OFF,
                        choices=list(CleanupMode), metavar="{off,start,exit}",
                        help="clean up existing workers of the instance type at start, "
                             "or the ones created by this run at exit")
    parser.add_argument("-v", dest="verbosity", type=int, default=2,
                        help="verbosity level: 0 is quiet, 2 is the maximum")
    parser.add_argument("-deflake", dest="deflake", type=int, default=1,
                        help="attempts allowed for creating and pushing to each worker")
    parser.add_argument("-keep-going", dest="keep_going", action="store_true",
                        help="keep the other workers running after a matching failure "
                             "(also -keep-going=true or -keep-going=false)")
    # Boolean flags take their value only in the -flag=value form, so a bare
    # -keep-going never swallows the instance type that follows it.
    parser.add_argument(*[f"-keep-going={v}" for v in TRUE_VALUES],
                        dest="keep_going", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument(*[f"-keep-going={v}" for v in FALSE_VALUES],
                        dest="keep_going", action="store_false", help=argparse.SUPPRESS)
    parser.add_argument("instance_type", nargs="?", default=None)
    parser.add_argument("command", nargs=argparse.REMAINDER)
    return parser


def configure_logging(verbosity: int, settings: Settings) -> None:
    """
    Configure logging for the process.

    Verbosity 0 keeps only warnings and errors.
    """
    logging.basicConfig(
        level=logging.INFO if verbosity > 0 else logging.WARNING,
        format=settings.LOG_FORMAT,
    )


def config_from_args(args: argparse.Namespace) -> SessionConfig:
    """
    Turn parsed arguments into a SessionConfig.

    Raises:
        FleetValidationError: If arguments are missing or invalid
    """
    if not args.instance_type:
        raise FleetValidationError("expected an instance type, followed by a command")
    return SessionConfig.build(
        instance_type=args.instance_type,
        command=args.command,
        env=args.env,
        instances=args.instances,
        deflake=args.deflake,
        cleanup=args.cleanup,
        keep_going=args.keep_going,
        match=args.match,
        verbosity=args.verbosity,
    )


async def run_swarm(config: SessionConfig, settings: Settings) -> FleetResult:
    """
    Run a fleet with the gomote backend, mapping SIGINT/SIGTERM to cancellation.

    Args:
        config: Fleet configuration
        settings: Process settings

    Returns:
        FleetResult: Aggregated outcome
    """
    loop = asyncio.get_running_loop()
    token = CancellationToken()

    installed = []
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, token.cancel, INTERRUPT_REASON)
            installed.append(signum)
        except NotImplementedError:
            logger.debug(f"Signal handlers not supported for {signum}; relying on KeyboardInterrupt")

    service = FleetService(
        backend=GomoteBackend(),
        artifacts=ArtifactService(settings.ARTIFACT_DIR),
        token=token,
        retry_delay_seconds=settings.RETRY_DELAY_SECONDS,
    )
    try:
        return await service.run(config)
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)


def report(result: FleetResult) -> int:
    """
    Log the outcome of a fleet run and pick the process exit code.

    Returns:
        int: Process exit code
    """
    if result.status == FleetStatus.ERROR:
        print(f"error: {result.error}", file=sys.stderr)
        return EXIT_INTERRUPTED if result.interrupted else EXIT_ERROR

    if result.status == FleetStatus.MATCHED_FAILURE:
        for failure in result.failures:
            logger.info(
                f"Failure on {failure.handle}: output in {failure.output_path or '<not written>'}, "
                f"archive in {failure.archive_path or '<not written>'}"
            )
        if not result.artifacts_complete:
            print("error: failure found but not all artifacts could be written", file=sys.stderr)
            return EXIT_ERROR
        return EXIT_OK

    if result.interrupted:
        logger.info("Interrupted before any matching failure was found")
    return EXIT_OK


def run_cli(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments, run the fleet and return the exit code.

    Args:
        argv: Arguments without the program name (defaults to sys.argv[1:])
    """
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.verbosity, settings)

    try:
        config = config_from_args(args)
    except FleetValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    init_system_info(settings.APP_VERSION)
    if settings.METRICS_PORT is not None:
        start_metrics_server(settings.METRICS_PORT)

    try:
        result = asyncio.run(run_swarm(config, settings))
    except FlakeswarmException as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED
    return report(result)


def main():
    """Main entry point."""
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
