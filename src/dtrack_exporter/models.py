"""Data models for Dependency-Track API records."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Severity(Enum):
    """Vulnerability severity buckets reported by Dependency-Track."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNASSIGNED = "UNASSIGNED"


class ViolationType(Enum):
    """Policy violation types."""

    LICENSE = "LICENSE"
    OPERATIONAL = "OPERATIONAL"
    SECURITY = "SECURITY"


class ViolationState(Enum):
    """Violation state of the policy that was breached."""

    INFO = "INFO"
    WARN = "WARN"
    FAIL = "FAIL"


class ViolationAnalysisState(Enum):
    """Triage outcome recorded on a violation analysis."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NOT_SET = "NOT_SET"


def _severity_counts(data: dict[str, Any]) -> dict[Severity, int]:
    return {severity: int(data.get(severity.value.lower()) or 0) for severity in Severity}


@dataclass(frozen=True)
class ProjectMetrics:
    """Latest metrics embedded in a project record."""

    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    unassigned: int = 0
    inherited_risk_score: float = 0.0

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ProjectMetrics":
        """Create metrics from the API representation."""
        data = data or {}
        counts = _severity_counts(data)
        return cls(
            critical=counts[Severity.CRITICAL],
            high=counts[Severity.HIGH],
            medium=counts[Severity.MEDIUM],
            low=counts[Severity.LOW],
            unassigned=counts[Severity.UNASSIGNED],
            inherited_risk_score=float(data.get("inheritedRiskScore") or 0.0),
        )

    def by_severity(self) -> dict[Severity, int]:
        """Vulnerability counts keyed by severity."""
        return {
            Severity.CRITICAL: self.critical,
            Severity.HIGH: self.high,
            Severity.MEDIUM: self.medium,
            Severity.LOW: self.low,
            Severity.UNASSIGNED: self.unassigned,
        }


@dataclass(frozen=True)
class Project:
    """A project as returned by the project list endpoints."""

    uuid: str
    name: str = ""
    version: str = ""
    classifier: str = ""
    active: bool = False
    tags: tuple[str, ...] = ()
    metrics: ProjectMetrics = field(default_factory=ProjectMetrics)
    # Unix epoch seconds, 0 when no BOM was ever imported
    last_bom_import: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        """Create a project from the API representation."""
        last_bom_import = data.get("lastBomImport") or 0
        return cls(
            uuid=str(data["uuid"]),
            name=data.get("name") or "",
            version=data.get("version") or "",
            classifier=data.get("classifier") or "",
            active=bool(data.get("active", False)),
            tags=tuple(t.get("name", "") for t in data.get("tags") or []),
            metrics=ProjectMetrics.from_dict(data.get("metrics")),
            last_bom_import=int(last_bom_import) // 1000,
        )


@dataclass(frozen=True)
class ProjectRef:
    """The owning project embedded in a policy violation."""

    uuid: str
    name: str = ""
    version: str = ""


@dataclass(frozen=True)
class ViolationAnalysis:
    """Analysis attached to a policy violation."""

    state: str
    suppressed: bool = False


@dataclass(frozen=True)
class PolicyViolation:
    """A policy violation as returned by the violation list endpoint."""

    uuid: str
    type: str
    project: ProjectRef
    state: str
    analysis: Optional[ViolationAnalysis] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PolicyViolation":
        """Create a policy violation from the API representation."""
        project = data.get("project") or {}
        policy = (data.get("policyCondition") or {}).get("policy") or {}

        analysis = None
        raw_analysis = data.get("analysis")
        if raw_analysis is not None:
            analysis = ViolationAnalysis(
                state=raw_analysis.get("analysisState") or "",
                suppressed=bool(raw_analysis.get("isSuppressed", False)),
            )

        return cls(
            uuid=str(data.get("uuid", "")),
            type=data.get("type") or "",
            project=ProjectRef(
                uuid=str(project.get("uuid", "")),
                name=project.get("name") or "",
                version=project.get("version") or "",
            ),
            state=policy.get("violationState") or "",
            analysis=analysis,
        )


@dataclass(frozen=True)
class PortfolioMetrics:
    """Latest metrics for the whole portfolio."""

    inherited_risk_score: float = 0.0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    unassigned: int = 0
    findings_audited: int = 0
    findings_unaudited: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PortfolioMetrics":
        """Create portfolio metrics from the API representation."""
        counts = _severity_counts(data)
        return cls(
            inherited_risk_score=float(data.get("inheritedRiskScore") or 0.0),
            critical=counts[Severity.CRITICAL],
            high=counts[Severity.HIGH],
            medium=counts[Severity.MEDIUM],
            low=counts[Severity.LOW],
            unassigned=counts[Severity.UNASSIGNED],
            findings_audited=int(data.get("findingsAudited") or 0),
            findings_unaudited=int(data.get("findingsUnaudited") or 0),
        )

    def by_severity(self) -> dict[Severity, int]:
        """Vulnerability counts keyed by severity."""
        return {
            Severity.CRITICAL: self.critical,
            Severity.HIGH: self.high,
            Severity.MEDIUM: self.medium,
            Severity.LOW: self.low,
            Severity.UNASSIGNED: self.unassigned,
        }
