"""dtrack-exporter - Prometheus exporter for Dependency-Track."""

__version__ = "0.1.0"

from dtrack_exporter.client import DependencyTrackClient
from dtrack_exporter.metrics import MetricSet
from dtrack_exporter.snapshot import SnapshotManager

__all__ = [
    "__version__",
    "DependencyTrackClient",
    "MetricSet",
    "SnapshotManager",
]
