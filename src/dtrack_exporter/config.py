"""Configuration for the exporter."""

import os
import re
from dataclasses import dataclass, field
from typing import Optional

from .errors import ConfigurationError
from .pagination import DEFAULT_PAGE_SIZE

ENV_ADDRESS = "DEPENDENCY_TRACK_ADDR"
ENV_API_KEY = "DEPENDENCY_TRACK_API_KEY"

DEFAULT_ADDRESS = "http://localhost:8080"
DEFAULT_LISTEN_ADDRESS = ":9916"
DEFAULT_METRICS_PATH = "/metrics"
DEFAULT_POLL_INTERVAL = 6 * 3600.0

_DURATION_UNITS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")

_TRUE_VALUES = {"1", "t", "true", "yes", "on"}
_FALSE_VALUES = {"0", "f", "false", "no", "off"}


def parse_duration(value: str) -> float:
    """Parse a duration such as ``30s``, ``5m``, ``6h`` or ``1h30m`` into seconds.

    A bare number is taken as seconds.
    """
    text = value.strip().lower()
    if not text:
        raise ConfigurationError("Empty duration")

    try:
        seconds = float(text)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos != len(text):
            raise ConfigurationError(f"Invalid duration: {value!r}")

    if seconds <= 0:
        raise ConfigurationError(f"Duration must be positive: {value!r}")
    return seconds


def parse_bool(value: str) -> bool:
    """Parse a boolean flag value."""
    text = value.strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean: {value!r}")


def parse_tags(value: Optional[str]) -> list[str]:
    """Split a comma-separated tag list, dropping blanks."""
    if not value:
        return []
    return [tag.strip() for tag in value.split(",") if tag.strip()]


def parse_listen_address(value: str) -> tuple[str, int]:
    """Split ``host:port`` (host may be empty) into its parts."""
    host, sep, port = value.rpartition(":")
    if not sep:
        raise ConfigurationError(f"Invalid listen address: {value!r}")
    try:
        port_number = int(port)
    except ValueError:
        raise ConfigurationError(f"Invalid listen port: {value!r}")
    return host.strip("[]") or "0.0.0.0", port_number


@dataclass
class ExporterConfig:
    """Configuration for the exporter process."""

    # Dependency-Track connection
    address: str = DEFAULT_ADDRESS
    api_key: Optional[str] = None

    # Collection
    project_tags: list[str] = field(default_factory=list)
    poll_interval: float = DEFAULT_POLL_INTERVAL  # seconds
    initialize_violation_metrics: bool = True  # 72 extra series per project
    page_size: int = DEFAULT_PAGE_SIZE

    # Serving
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    metrics_path: str = DEFAULT_METRICS_PATH

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict) -> "ExporterConfig":
        """Create config from dictionary, falling back to the environment."""
        project_tags = data.get("project_tags", [])
        if isinstance(project_tags, str):
            project_tags = parse_tags(project_tags)

        poll_interval = data.get("poll_interval", DEFAULT_POLL_INTERVAL)
        if isinstance(poll_interval, str):
            poll_interval = parse_duration(poll_interval)

        initialize = data.get("initialize_violation_metrics", True)
        if isinstance(initialize, str):
            initialize = parse_bool(initialize)

        return cls(
            address=data.get("address") or os.environ.get(ENV_ADDRESS) or DEFAULT_ADDRESS,
            api_key=data.get("api_key") or os.environ.get(ENV_API_KEY),
            project_tags=list(project_tags),
            poll_interval=float(poll_interval),
            initialize_violation_metrics=bool(initialize),
            page_size=int(data.get("page_size", DEFAULT_PAGE_SIZE)),
            listen_address=data.get("listen_address", DEFAULT_LISTEN_ADDRESS),
            metrics_path=data.get("metrics_path", DEFAULT_METRICS_PATH),
            log_level=data.get("log_level", "INFO").upper(),
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary, without the API key."""
        return {
            "address": self.address,
            "project_tags": self.project_tags,
            "poll_interval": self.poll_interval,
            "initialize_violation_metrics": self.initialize_violation_metrics,
            "page_size": self.page_size,
            "listen_address": self.listen_address,
            "metrics_path": self.metrics_path,
            "log_level": self.log_level,
        }

    def validate(self) -> None:
        """Raise ConfigurationError if the exporter cannot run with this config."""
        if not self.api_key:
            raise ConfigurationError(
                f"A Dependency-Track API key is required (--dtrack.api-key or ${ENV_API_KEY})"
            )
        if not self.address.startswith(("http://", "https://")):
            raise ConfigurationError(f"Invalid Dependency-Track address: {self.address!r}")
        if self.poll_interval <= 0:
            raise ConfigurationError("Poll interval must be positive")
        if self.page_size < 1:
            raise ConfigurationError("Page size must be at least 1")
        if not self.metrics_path.startswith("/"):
            raise ConfigurationError(f"Metrics path must start with '/': {self.metrics_path!r}")
        parse_listen_address(self.listen_address)

    @property
    def listen_host(self) -> str:
        return parse_listen_address(self.listen_address)[0]

    @property
    def listen_port(self) -> int:
        return parse_listen_address(self.listen_address)[1]
