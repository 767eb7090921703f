"""Collectors that turn Dependency-Track data into metrics."""

from dtrack_exporter.collectors.base import UpstreamClient
from dtrack_exporter.collectors.portfolio import PortfolioCollector
from dtrack_exporter.collectors.project import ProjectCollector, violation_label_space
from dtrack_exporter.collectors.violation import ViolationCollector, violation_labels

__all__ = [
    "PortfolioCollector",
    "ProjectCollector",
    "UpstreamClient",
    "ViolationCollector",
    "violation_label_space",
    "violation_labels",
]
