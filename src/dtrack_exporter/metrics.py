"""Metric catalog and the per-cycle metric container.

Every labelled metric has a label record whose fields are exactly the
metric's label names, so collectors cannot emit a series with a missing
or misspelled label.
"""

from dataclasses import asdict, dataclass, fields
from typing import Optional

from prometheus_client import CollectorRegistry, Gauge, Info, generate_latest

from dtrack_exporter import __version__

NAMESPACE = "dependency_track"


@dataclass(frozen=True)
class LabelSet:
    """Base class for label records."""

    @classmethod
    def names(cls) -> list[str]:
        """Label names in declaration order."""
        return [f.name for f in fields(cls)]

    def to_dict(self) -> dict[str, str]:
        """Label values keyed by label name."""
        return asdict(self)


@dataclass(frozen=True)
class SeverityLabels(LabelSet):
    severity: str


@dataclass(frozen=True)
class FindingsLabels(LabelSet):
    audited: str


@dataclass(frozen=True)
class ProjectLabels(LabelSet):
    """Identity labels shared by the per-project metrics."""

    uuid: str
    name: str
    version: str


@dataclass(frozen=True)
class ProjectInfoLabels(LabelSet):
    uuid: str
    name: str
    version: str
    classifier: str
    active: str
    tags: str


@dataclass(frozen=True)
class ProjectVulnerabilityLabels(LabelSet):
    uuid: str
    name: str
    version: str
    severity: str


@dataclass(frozen=True)
class PolicyViolationLabels(LabelSet):
    uuid: str
    name: str
    version: str
    type: str
    state: str
    analysis: str
    suppressed: str


def format_bool(value: bool) -> str:
    """Render a boolean label value the way Prometheus users expect."""
    return "true" if value else "false"


class MetricSet:
    """All metrics produced by one poll cycle, in their own registry.

    A MetricSet is filled by the collectors of a single cycle and then
    published read-only; it is never reused for a later cycle.
    """

    def __init__(self, namespace: str = NAMESPACE):
        self.registry = CollectorRegistry()

        self._build_info = Info(
            "exporter_build",
            "A metric with a constant '1' value labeled by the exporter version.",
            namespace=namespace,
            registry=self.registry,
        )
        self._build_info.info({"version": __version__})

        self._namespace = namespace
        # Created on first set so a failed portfolio fetch exposes no sample
        self._portfolio_inherited_risk_score: Optional[Gauge] = None
        self._portfolio_vulnerabilities = self._gauge(
            namespace,
            "portfolio",
            "vulnerabilities",
            "Number of vulnerabilities across the whole portfolio, by severity.",
            SeverityLabels,
        )
        self._portfolio_findings = self._gauge(
            namespace,
            "portfolio",
            "findings",
            "Number of findings across the whole portfolio, audited and unaudited.",
            FindingsLabels,
        )
        self._project_info = self._gauge(
            namespace,
            "project",
            "info",
            "Project information.",
            ProjectInfoLabels,
        )
        self._project_vulnerabilities = self._gauge(
            namespace,
            "project",
            "vulnerabilities",
            "Number of vulnerabilities for a project by severity.",
            ProjectVulnerabilityLabels,
        )
        self._project_policy_violations = self._gauge(
            namespace,
            "project",
            "policy_violations",
            "Policy violations for a project.",
            PolicyViolationLabels,
        )
        self._project_last_bom_import = self._gauge(
            namespace,
            "project",
            "last_bom_import",
            "Last BOM import date, represented as a Unix timestamp.",
            ProjectLabels,
        )
        self._project_inherited_risk_score = self._gauge(
            namespace,
            "project",
            "inherited_risk_score",
            "Inherited risk score for a project.",
            ProjectLabels,
        )

    def _gauge(
        self,
        namespace: str,
        subsystem: str,
        name: str,
        documentation: str,
        labels: type[LabelSet],
    ) -> Gauge:
        return Gauge(
            name,
            documentation,
            labelnames=labels.names(),
            namespace=namespace,
            subsystem=subsystem,
            registry=self.registry,
        )

    # Portfolio

    def set_portfolio_inherited_risk_score(self, value: float) -> None:
        if self._portfolio_inherited_risk_score is None:
            self._portfolio_inherited_risk_score = Gauge(
                "inherited_risk_score",
                "The inherited risk score of the whole portfolio.",
                namespace=self._namespace,
                subsystem="portfolio",
                registry=self.registry,
            )
        self._portfolio_inherited_risk_score.set(value)

    def set_portfolio_vulnerabilities(self, labels: SeverityLabels, value: float) -> None:
        self._portfolio_vulnerabilities.labels(**labels.to_dict()).set(value)

    def set_portfolio_findings(self, labels: FindingsLabels, value: float) -> None:
        self._portfolio_findings.labels(**labels.to_dict()).set(value)

    # Projects

    def set_project_info(self, labels: ProjectInfoLabels) -> None:
        self._project_info.labels(**labels.to_dict()).set(1)

    def set_project_vulnerabilities(
        self, labels: ProjectVulnerabilityLabels, value: float
    ) -> None:
        self._project_vulnerabilities.labels(**labels.to_dict()).set(value)

    def set_project_last_bom_import(self, labels: ProjectLabels, value: float) -> None:
        self._project_last_bom_import.labels(**labels.to_dict()).set(value)

    def set_project_inherited_risk_score(self, labels: ProjectLabels, value: float) -> None:
        self._project_inherited_risk_score.labels(**labels.to_dict()).set(value)

    # Policy violations

    def init_policy_violation(self, labels: PolicyViolationLabels) -> None:
        """Create a violation series at 0 so a later 0 -> 1 change is visible."""
        self._project_policy_violations.labels(**labels.to_dict()).set(0)

    def inc_policy_violation(self, labels: PolicyViolationLabels) -> None:
        """Count one violation against a label combination."""
        self._project_policy_violations.labels(**labels.to_dict()).inc()

    # Reading

    def get(self, name: str, labels: Optional[LabelSet] = None) -> Optional[float]:
        """Current value of a series, or None if it does not exist.

        Args:
            name: Fully qualified metric name.
            labels: Label record of the series, None for unlabelled metrics.
        """
        return self.registry.get_sample_value(name, labels.to_dict() if labels else None)

    def series(self, name: str) -> list[dict[str, str]]:
        """Label sets of every series exposed under a metric name."""
        result = []
        for metric in self.registry.collect():
            for sample in metric.samples:
                if sample.name == name:
                    result.append(dict(sample.labels))
        return result

    def render(self) -> bytes:
        """Render all series in the Prometheus text exposition format."""
        return generate_latest(self.registry)
