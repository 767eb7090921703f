"""Portfolio-wide metrics."""

import logging
import threading
from typing import Optional

from dtrack_exporter.errors import CancelledError
from dtrack_exporter.metrics import FindingsLabels, MetricSet, SeverityLabels, format_bool

from .base import UpstreamClient

logger = logging.getLogger(__name__)


class PortfolioCollector:
    """Collects the latest portfolio metrics with a single request."""

    def __init__(self, client: UpstreamClient):
        self.client = client

    def collect(self, metrics: MetricSet, cancel: Optional[threading.Event] = None) -> None:
        """Fetch the portfolio aggregate and write it into ``metrics``."""
        if cancel is not None and cancel.is_set():
            raise CancelledError("Portfolio collection cancelled")

        portfolio = self.client.get_portfolio_metrics()

        metrics.set_portfolio_inherited_risk_score(portfolio.inherited_risk_score)

        for severity, count in portfolio.by_severity().items():
            metrics.set_portfolio_vulnerabilities(SeverityLabels(severity=severity.value), count)

        metrics.set_portfolio_findings(
            FindingsLabels(audited=format_bool(True)), portfolio.findings_audited
        )
        metrics.set_portfolio_findings(
            FindingsLabels(audited=format_bool(False)), portfolio.findings_unaudited
        )

        logger.debug("Collected portfolio metrics (risk score %s)", portfolio.inherited_risk_score)
