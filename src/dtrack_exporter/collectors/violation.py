"""Policy violation counts."""

import logging
import threading
from typing import AbstractSet, Optional

from dtrack_exporter.metrics import MetricSet, PolicyViolationLabels, format_bool
from dtrack_exporter.models import PolicyViolation
from dtrack_exporter.pagination import DEFAULT_PAGE_SIZE, for_each

from .base import UpstreamClient

logger = logging.getLogger(__name__)


def violation_labels(violation: PolicyViolation) -> PolicyViolationLabels:
    """Label record a violation is counted under."""
    analysis = ""
    suppressed = False
    if violation.analysis is not None:
        analysis = violation.analysis.state
        suppressed = violation.analysis.suppressed

    return PolicyViolationLabels(
        uuid=violation.project.uuid,
        name=violation.project.name,
        version=violation.project.version,
        type=violation.type,
        state=violation.state,
        analysis=analysis,
        suppressed=format_bool(suppressed),
    )


class ViolationCollector:
    """Counts policy violations of the projects collected in the same cycle."""

    def __init__(self, client: UpstreamClient, page_size: int = DEFAULT_PAGE_SIZE):
        self.client = client
        self.page_size = page_size

    def collect(
        self,
        metrics: MetricSet,
        matched_projects: AbstractSet[str],
        cancel: Optional[threading.Event] = None,
    ) -> int:
        """Fetch all violations and count those of ``matched_projects``.

        Args:
            metrics: Container of the current cycle.
            matched_projects: UUIDs returned by this cycle's project collection.
            cancel: Event that aborts the walk when set.

        Returns:
            Number of violations counted.
        """
        counted = 0

        def count(violation: PolicyViolation) -> None:
            nonlocal counted
            if violation.project.uuid not in matched_projects:
                return
            metrics.inc_policy_violation(violation_labels(violation))
            counted += 1

        # The whole walk completes before the first increment
        total = for_each(
            self.client.get_policy_violations,
            count,
            page_size=self.page_size,
            cancel=cancel,
        )

        logger.debug(
            "Counted %d of %d policy violations (%d dropped for unmatched projects)",
            counted,
            total,
            total - counted,
        )
        return counted
