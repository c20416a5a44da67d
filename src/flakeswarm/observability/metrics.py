"""Prometheus metrics for flakeswarm."""
import logging
from prometheus_client import Counter, Gauge, Info, start_http_server

logger = logging.getLogger(__name__)


# Run metrics
runs_total = Counter(
    'flakeswarm_runs_total',
    'Total number of command executions, by classification',
    ['instance_type', 'verdict']
)

# Session metrics
sessions_active = Gauge(
    'flakeswarm_sessions_active',
    'Number of worker sessions currently running'
)

sessions_finished_total = Counter(
    'flakeswarm_sessions_finished_total',
    'Total number of worker sessions that reached a terminal state',
    ['state']
)

setup_failures_total = Counter(
    'flakeswarm_setup_failures_total',
    'Total number of sessions abandoned after exhausting setup retries',
    ['stage']
)

# Worker metrics
workers_created_total = Counter(
    'flakeswarm_workers_created_total',
    'Total number of workers created',
    ['instance_type']
)

workers_destroyed_total = Counter(
    'flakeswarm_workers_destroyed_total',
    'Total number of workers destroyed',
    ['instance_type']
)

# System info
system_info = Info(
    'flakeswarm_system',
    'flakeswarm system information'
)


def init_system_info(version: str) -> None:
    """
    Initialize system information metric.

    Args:
        version: Application version
    """
    system_info.info({
        'version': version,
        'name': 'flakeswarm',
    })


def start_metrics_server(port: int) -> None:
    """
    Expose metrics over HTTP on the given port.

    Args:
        port: TCP port for the Prometheus scrape endpoint
    """
    start_http_server(port)
    logger.info(f"Serving metrics on :{port}")
