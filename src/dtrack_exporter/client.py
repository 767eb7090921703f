"""Dependency-Track REST API client."""

import logging
from typing import Any, Callable, Optional, TypeVar
from urllib.parse import quote

import httpx

from dtrack_exporter import __version__
from dtrack_exporter.errors import ConfigurationError, UpstreamError
from dtrack_exporter.models import PolicyViolation, PortfolioMetrics, Project
from dtrack_exporter.pagination import Page

logger = logging.getLogger(__name__)

T = TypeVar("T")

TOTAL_COUNT_HEADER = "X-Total-Count"


class DependencyTrackClient:
    """Client for the Dependency-Track API.

    Documentation: https://docs.dependencytrack.org/integrations/rest-api/
    """

    API_PREFIX = "/api/v1"

    def __init__(
        self,
        address: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            address: Base URL of the Dependency-Track API server.
            api_key: API key sent in the X-Api-Key header.
            timeout: HTTP request timeout in seconds.
            transport: Optional httpx transport, mainly for tests.
        """
        self.address = address.rstrip("/")
        headers = {
            "Accept": "application/json",
            "User-Agent": f"dtrack-exporter/{__version__}",
        }
        if api_key:
            headers["X-Api-Key"] = api_key

        self._client = httpx.Client(
            base_url=self.address,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def get_projects(self, page_size: int, page_number: int) -> Page[Project]:
        """Get one page of all projects."""
        return self._get_page(
            f"{self.API_PREFIX}/project",
            Project.from_dict,
            page_size,
            page_number,
        )

    def get_projects_by_tag(
        self, tag: str, page_size: int, page_number: int
    ) -> Page[Project]:
        """Get one page of the projects carrying a tag."""
        return self._get_page(
            f"{self.API_PREFIX}/project/tag/{quote(tag, safe='')}",
            Project.from_dict,
            page_size,
            page_number,
        )

    def get_policy_violations(
        self, page_size: int, page_number: int, suppressed: bool = True
    ) -> Page[PolicyViolation]:
        """Get one page of policy violations across all projects.

        Args:
            page_size: Items per page.
            page_number: 1-based page number.
            suppressed: Include suppressed violations.
        """
        return self._get_page(
            f"{self.API_PREFIX}/violation",
            PolicyViolation.from_dict,
            page_size,
            page_number,
            params={"suppressed": str(suppressed).lower()},
        )

    def get_portfolio_metrics(self) -> PortfolioMetrics:
        """Get the most recent portfolio metrics."""
        response = self._get(f"{self.API_PREFIX}/metrics/portfolio/current")
        return PortfolioMetrics.from_dict(response.json() or {})

    def get_version(self) -> dict[str, Any]:
        """Get the server version information (unauthenticated)."""
        return self._get("/api/version").json()

    def validate(self) -> dict[str, Any]:
        """Check that the server is reachable and the API key is accepted.

        Returns:
            The server version information.

        Raises:
            ConfigurationError: If the server is unreachable or rejects the key.
        """
        try:
            version = self.get_version()
            self.get_projects(page_size=1, page_number=1)
        except ValueError as e:
            raise ConfigurationError(
                f"{self.address} did not answer like a Dependency-Track API server: {e}"
            ) from e
        except UpstreamError as e:
            if e.status_code in (401, 403):
                raise ConfigurationError(
                    f"Dependency-Track rejected the API key (HTTP {e.status_code})"
                ) from e
            raise ConfigurationError(
                f"Cannot reach Dependency-Track at {self.address}: {e}"
            ) from e

        logger.info(
            "Connected to Dependency-Track %s at %s",
            version.get("version", "unknown"),
            self.address,
        )
        return version

    def _get_page(
        self,
        path: str,
        parse: Callable[[dict[str, Any]], T],
        page_size: int,
        page_number: int,
        params: Optional[dict[str, Any]] = None,
    ) -> Page[T]:
        """Fetch one page and read the total from the response headers."""
        query = dict(params or {})
        query["pageSize"] = page_size
        query["pageNumber"] = page_number

        response = self._get(path, params=query)
        items = [parse(item) for item in response.json() or []]

        total = response.headers.get(TOTAL_COUNT_HEADER)
        total_count = None
        if total is not None:
            try:
                total_count = int(total)
            except ValueError:
                logger.warning("Invalid %s header on %s: %r", TOTAL_COUNT_HEADER, path, total)

        return Page(items=items, total_count=total_count)

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"GET {path} returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"GET {path} failed: {e}") from e
        return response

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "DependencyTrackClient":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()
