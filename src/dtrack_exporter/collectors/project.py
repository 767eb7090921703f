"""Per-project metrics."""

import itertools
import logging
import threading
from typing import Optional

from dtrack_exporter.metrics import (
    MetricSet,
    PolicyViolationLabels,
    ProjectInfoLabels,
    ProjectLabels,
    ProjectVulnerabilityLabels,
    format_bool,
)
from dtrack_exporter.models import (
    Project,
    ViolationAnalysisState,
    ViolationState,
    ViolationType,
)
from dtrack_exporter.pagination import DEFAULT_PAGE_SIZE, fetch_all

from .base import UpstreamClient

logger = logging.getLogger(__name__)

# "" is a violation without any analysis
VIOLATION_ANALYSIS_VALUES = [s.value for s in ViolationAnalysisState] + [""]
VIOLATION_SUPPRESSED_VALUES = [format_bool(True), format_bool(False)]


def violation_label_space(project: Project) -> list[PolicyViolationLabels]:
    """Every policy violation label combination possible for a project.

    3 types x 3 states x 4 analysis values x 2 suppressed values = 72.
    """
    return [
        PolicyViolationLabels(
            uuid=project.uuid,
            name=project.name,
            version=project.version,
            type=violation_type.value,
            state=state.value,
            analysis=analysis,
            suppressed=suppressed,
        )
        for violation_type, state, analysis, suppressed in itertools.product(
            ViolationType,
            ViolationState,
            VIOLATION_ANALYSIS_VALUES,
            VIOLATION_SUPPRESSED_VALUES,
        )
    ]


class ProjectCollector:
    """Collects project identity, vulnerability and risk metrics.

    Projects are either all projects on the server or, when ``tags`` is
    set, the union of the projects carrying any of those tags.
    """

    def __init__(
        self,
        client: UpstreamClient,
        tags: Optional[list[str]] = None,
        initialize_violation_metrics: bool = True,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """Initialize the collector.

        Args:
            client: Dependency-Track client.
            tags: Only collect projects with at least one of these tags.
            initialize_violation_metrics: Pre-create all 72 policy violation
                series per project at 0.
            page_size: Items requested per page.
        """
        self.client = client
        self.tags = list(tags or [])
        self.initialize_violation_metrics = initialize_violation_metrics
        self.page_size = page_size

    def fetch_projects(self, cancel: Optional[threading.Event] = None) -> list[Project]:
        """Fetch the projects in scope, each UUID at most once."""
        if not self.tags:
            return fetch_all(self.client.get_projects, page_size=self.page_size, cancel=cancel)

        projects: list[Project] = []
        seen: set[str] = set()
        for tag in self.tags:
            tagged = fetch_all(
                lambda size, number, tag=tag: self.client.get_projects_by_tag(tag, size, number),
                page_size=self.page_size,
                cancel=cancel,
            )
            for project in tagged:
                if project.uuid in seen:
                    continue
                seen.add(project.uuid)
                projects.append(project)
        return projects

    def collect(self, metrics: MetricSet, cancel: Optional[threading.Event] = None) -> set[str]:
        """Fetch projects and write their series into ``metrics``.

        Returns:
            UUIDs of the projects collected in this call. Violations are
            only attributed to these projects.
        """
        projects = self.fetch_projects(cancel=cancel)

        for project in projects:
            self._collect_project(metrics, project)

        logger.debug(
            "Collected metrics for %d projects%s",
            len(projects),
            f" (tags: {', '.join(self.tags)})" if self.tags else "",
        )
        return {project.uuid for project in projects}

    def _collect_project(self, metrics: MetricSet, project: Project) -> None:
        metrics.set_project_info(
            ProjectInfoLabels(
                uuid=project.uuid,
                name=project.name,
                version=project.version,
                classifier=project.classifier,
                active=format_bool(project.active),
                tags=",".join(project.tags),
            )
        )

        for severity, count in project.metrics.by_severity().items():
            metrics.set_project_vulnerabilities(
                ProjectVulnerabilityLabels(
                    uuid=project.uuid,
                    name=project.name,
                    version=project.version,
                    severity=severity.value,
                ),
                count,
            )

        identity = ProjectLabels(uuid=project.uuid, name=project.name, version=project.version)
        metrics.set_project_last_bom_import(identity, project.last_bom_import)
        metrics.set_project_inherited_risk_score(identity, project.metrics.inherited_risk_score)

        # Without a 0 baseline, increase() cannot see a series that starts at 1
        if self.initialize_violation_metrics:
            for labels in violation_label_space(project):
                metrics.init_policy_violation(labels)
