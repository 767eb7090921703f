"""Shared fixtures for exporter tests."""

import uuid
from typing import Optional

import pytest

from dtrack_exporter.errors import UpstreamError
from dtrack_exporter.models import (
    PolicyViolation,
    PortfolioMetrics,
    Project,
    ProjectMetrics,
    ProjectRef,
    ViolationAnalysis,
)
from dtrack_exporter.pagination import Page


def make_project(name: str = "app", version: str = "1.0", tags: tuple[str, ...] = (), **kwargs) -> Project:
    """Build a project with a random UUID."""
    return Project(
        uuid=kwargs.pop("uuid", str(uuid.uuid4())),
        name=name,
        version=version,
        tags=tags,
        **kwargs,
    )


def make_violation(
    project: Project,
    type: str = "SECURITY",
    state: str = "WARN",
    analysis: Optional[ViolationAnalysis] = None,
) -> PolicyViolation:
    """Build a violation owned by ``project``."""
    return PolicyViolation(
        uuid=str(uuid.uuid4()),
        type=type,
        project=ProjectRef(uuid=project.uuid, name=project.name, version=project.version),
        state=state,
        analysis=analysis,
    )


def paginate(items: list, page_size: int, page_number: int, total: Optional[int] = None) -> Page:
    start = page_size * (page_number - 1)
    return Page(
        items=items[start : start + page_size],
        total_count=len(items) if total is None else total,
    )


class FakeClient:
    """In-memory Dependency-Track upstream."""

    def __init__(
        self,
        projects: Optional[list[Project]] = None,
        violations: Optional[list[PolicyViolation]] = None,
        portfolio: Optional[PortfolioMetrics] = None,
    ):
        self.projects = projects or []
        self.violations = violations or []
        self.portfolio = portfolio or PortfolioMetrics()
        self.fail: set[str] = set()
        self.calls: list[tuple] = []

    def _check(self, operation: str) -> None:
        if operation in self.fail:
            raise UpstreamError(f"{operation} failed", status_code=500)

    def get_projects(self, page_size: int, page_number: int) -> Page[Project]:
        self.calls.append(("projects", page_size, page_number))
        self._check("projects")
        return paginate(self.projects, page_size, page_number)

    def get_projects_by_tag(self, tag: str, page_size: int, page_number: int) -> Page[Project]:
        self.calls.append(("projects_by_tag", tag, page_size, page_number))
        self._check("projects")
        tagged = [p for p in self.projects if tag in p.tags]
        return paginate(tagged, page_size, page_number)

    def get_policy_violations(
        self, page_size: int, page_number: int, suppressed: bool = True
    ) -> Page[PolicyViolation]:
        self.calls.append(("violations", page_size, page_number))
        self._check("violations")
        return paginate(self.violations, page_size, page_number)

    def get_portfolio_metrics(self) -> PortfolioMetrics:
        self.calls.append(("portfolio",))
        self._check("portfolio")
        return self.portfolio


@pytest.fixture
def project():
    """A tagged project with some vulnerabilities."""
    return make_project(
        name="payments",
        version="2.3.1",
        classifier="APPLICATION",
        active=True,
        tags=("prod", "pci"),
        metrics=ProjectMetrics(
            critical=1,
            high=2,
            medium=3,
            low=4,
            unassigned=0,
            inherited_risk_score=42.5,
        ),
        last_bom_import=1700000000,
    )


@pytest.fixture
def fake_client(project):
    """Upstream holding one project and no violations."""
    return FakeClient(projects=[project])
