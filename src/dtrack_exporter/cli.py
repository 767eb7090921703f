"""Command-line interface for dtrack-exporter."""

import logging
import signal
import sys
from typing import Any, Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from dtrack_exporter import __version__
from dtrack_exporter.client import DependencyTrackClient
from dtrack_exporter.config import (
    DEFAULT_ADDRESS,
    DEFAULT_LISTEN_ADDRESS,
    DEFAULT_METRICS_PATH,
    ENV_ADDRESS,
    ENV_API_KEY,
    ExporterConfig,
    parse_bool,
    parse_duration,
)
from dtrack_exporter.errors import ConfigurationError
from dtrack_exporter.metrics import NAMESPACE
from dtrack_exporter.pagination import DEFAULT_PAGE_SIZE
from dtrack_exporter.server import MetricsApp, MetricsServer
from dtrack_exporter.snapshot import SnapshotManager

console = Console(stderr=True)
logger = logging.getLogger("dtrack_exporter")


class DurationType(click.ParamType):
    """A duration such as ``30s``, ``5m`` or ``6h``, converted to seconds."""

    name = "duration"

    def convert(self, value: Any, param: Optional[click.Parameter], ctx: Optional[click.Context]) -> float:
        if isinstance(value, (int, float)):
            return float(value)
        try:
            return parse_duration(value)
        except ConfigurationError as e:
            self.fail(str(e), param, ctx)


class BoolTextType(click.ParamType):
    """A boolean given as text (``true``/``false``, ``1``/``0``, ...)."""

    name = "bool"

    def convert(self, value: Any, param: Optional[click.Parameter], ctx: Optional[click.Context]) -> bool:
        if isinstance(value, bool):
            return value
        try:
            return parse_bool(value)
        except ConfigurationError as e:
            self.fail(str(e), param, ctx)


def setup_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())
    # Per-request logs from httpx are too noisy at info
    logging.getLogger("httpx").setLevel(logging.WARNING)


def run_exporter(config: ExporterConfig) -> int:
    """Run the poller and HTTP server until SIGINT/SIGTERM.

    Returns:
        Process exit code.
    """
    logger.info("Starting %s_exporter %s", NAMESPACE, __version__)

    client = DependencyTrackClient(config.address, config.api_key)
    try:
        client.validate()
    except ConfigurationError as e:
        logger.error("Error creating client: %s", e)
        client.close()
        return 1

    manager = SnapshotManager(
        client,
        project_tags=config.project_tags,
        initialize_violation_metrics=config.initialize_violation_metrics,
        page_size=config.page_size,
    )

    try:
        server = MetricsServer(
            MetricsApp(manager.current, config.metrics_path),
            host=config.listen_host,
            port=config.listen_port,
        )
    except OSError as e:
        logger.error("Error starting HTTP server: %s", e)
        client.close()
        return 1

    stop = manager.cancel_event

    def _handle_signal(signum: int, frame: Any) -> None:
        stop.set()

    previous = {
        signum: signal.signal(signum, _handle_signal)
        for signum in (signal.SIGTERM, signal.SIGINT)
    }

    manager.start(config.poll_interval)
    server.start()
    try:
        while not stop.wait(1.0):
            pass
        logger.info("Received shutdown signal, exiting gracefully...")
    finally:
        server.shutdown()
        manager.stop()
        client.close()
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    return 0


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name=f"{NAMESPACE}_exporter")
@click.option(
    "--web.listen-address",
    "listen_address",
    default=DEFAULT_LISTEN_ADDRESS,
    show_default=True,
    help="Address to listen on for HTTP requests",
)
@click.option(
    "--web.metrics-path",
    "metrics_path",
    default=DEFAULT_METRICS_PATH,
    show_default=True,
    help="Path under which to expose metrics",
)
@click.option(
    "--dtrack.address",
    "address",
    default=DEFAULT_ADDRESS,
    show_default=True,
    envvar=ENV_ADDRESS,
    show_envvar=True,
    help="Dependency-Track server address",
)
@click.option(
    "--dtrack.api-key",
    "api_key",
    envvar=ENV_API_KEY,
    show_envvar=True,
    help="Dependency-Track API key",
)
@click.option(
    "--dtrack.project-tags",
    "project_tags",
    default="",
    help="Comma-separated list of project tags to filter on",
)
@click.option(
    "--dtrack.poll-interval",
    "poll_interval",
    type=DurationType(),
    default="6h",
    show_default=True,
    help="Interval to poll Dependency-Track for metrics",
)
@click.option(
    "--dtrack.initialize-violation-metrics",
    "initialize_violation_metrics",
    type=BoolTextType(),
    default="true",
    show_default=True,
    help="Initialize all possible violation metric combinations to 0",
)
@click.option(
    "--dtrack.page-size",
    "page_size",
    type=click.IntRange(min=1),
    default=DEFAULT_PAGE_SIZE,
    show_default=True,
    help="Number of items requested per page",
)
@click.option(
    "--log.level",
    "log_level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="info",
    show_default=True,
    help="Only log messages with the given severity or above",
)
def main(
    listen_address: str,
    metrics_path: str,
    address: str,
    api_key: Optional[str],
    project_tags: str,
    poll_interval: float,
    initialize_violation_metrics: bool,
    page_size: int,
    log_level: str,
) -> None:
    """Export Dependency-Track metrics for Prometheus."""
    setup_logging(log_level)

    try:
        config = ExporterConfig.from_dict(
            {
                "address": address,
                "api_key": api_key,
                "project_tags": project_tags,
                "poll_interval": poll_interval,
                "initialize_violation_metrics": initialize_violation_metrics,
                "page_size": page_size,
                "listen_address": listen_address,
                "metrics_path": metrics_path,
                "log_level": log_level,
            }
        )
        config.validate()
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    sys.exit(run_exporter(config))


if __name__ == "__main__":
    main()
