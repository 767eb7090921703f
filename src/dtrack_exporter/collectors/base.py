"""Interfaces shared by the collectors."""

from typing import Protocol

from dtrack_exporter.models import PolicyViolation, PortfolioMetrics, Project
from dtrack_exporter.pagination import Page


class UpstreamClient(Protocol):
    """The Dependency-Track operations the collectors rely on."""

    def get_projects(self, page_size: int, page_number: int) -> Page[Project]: ...

    def get_projects_by_tag(
        self, tag: str, page_size: int, page_number: int
    ) -> Page[Project]: ...

    def get_policy_violations(
        self, page_size: int, page_number: int, suppressed: bool = True
    ) -> Page[PolicyViolation]: ...

    def get_portfolio_metrics(self) -> PortfolioMetrics: ...
