"""Tests for the Dependency-Track API client."""

import uuid

import httpx
import pytest

from dtrack_exporter.client import DependencyTrackClient
from dtrack_exporter.errors import ConfigurationError, UpstreamError
from dtrack_exporter.pagination import fetch_all


def project_json(index: int) -> dict:
    return {
        "uuid": str(uuid.UUID(int=index)),
        "name": f"project-{index}",
        "version": "1.0",
        "classifier": "APPLICATION",
        "active": True,
        "tags": [{"name": "prod"}],
        "lastBomImport": 1700000000123,
        "metrics": {
            "critical": 1,
            "high": 2,
            "medium": 3,
            "low": 4,
            "unassigned": 5,
            "inheritedRiskScore": 17.0,
        },
    }


def paged_handler(path: str, items: list[dict], requests: list):
    """A MockTransport handler serving ``items`` page by page at ``path``."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path != path:
            return httpx.Response(404)
        requests.append(request)
        page_size = int(request.url.params["pageSize"])
        page_number = int(request.url.params["pageNumber"])
        start = page_size * (page_number - 1)
        return httpx.Response(
            200,
            json=items[start : start + page_size],
            headers={"X-Total-Count": str(len(items))},
        )

    return handler


def make_client(handler, api_key="secret") -> DependencyTrackClient:
    return DependencyTrackClient(
        "http://dtrack.local/",
        api_key=api_key,
        transport=httpx.MockTransport(handler),
    )


class TestPagedEndpoints:
    """Tests for the paginated list operations."""

    def test_fetch_projects_pagination(self):
        requests = []
        items = [project_json(i) for i in range(468)]
        client = make_client(paged_handler("/api/v1/project", items, requests))

        projects = fetch_all(client.get_projects, page_size=100)

        assert [p.uuid for p in projects] == [item["uuid"] for item in items]
        assert len({p.uuid for p in projects}) == 468
        assert len(requests) == 5

    def test_fetch_projects_by_tag(self):
        requests = []
        items = [project_json(1)]
        client = make_client(paged_handler("/api/v1/project/tag/prod", items, requests))

        page = client.get_projects_by_tag("prod", page_size=100, page_number=1)

        assert [p.name for p in page.items] == ["project-1"]
        assert page.total_count == 1

    def test_tag_is_url_encoded(self):
        seen = []

        def handler(request):
            seen.append(request.url.raw_path)
            return httpx.Response(200, json=[], headers={"X-Total-Count": "0"})

        client = make_client(handler)
        client.get_projects_by_tag("team a", page_size=10, page_number=1)

        assert seen[0].startswith(b"/api/v1/project/tag/team%20a?")

    def test_fetch_policy_violations_pagination(self):
        requests = []
        items = [
            {
                "uuid": str(uuid.uuid4()),
                "type": "LICENSE",
                "project": {"uuid": str(uuid.UUID(int=i % 7)), "name": "p", "version": "1"},
                "policyCondition": {"policy": {"violationState": "FAIL"}},
            }
            for i in range(468)
        ]
        client = make_client(paged_handler("/api/v1/violation", items, requests))

        violations = fetch_all(client.get_policy_violations, page_size=100)

        assert [v.uuid for v in violations] == [item["uuid"] for item in items]
        assert requests[0].url.params["suppressed"] == "true"
        assert len(requests) == 5

    def test_project_parsing(self):
        client = make_client(paged_handler("/api/v1/project", [project_json(3)], []))

        project = client.get_projects(page_size=10, page_number=1).items[0]

        assert project.tags == ("prod",)
        assert project.active is True
        assert project.last_bom_import == 1700000000
        assert project.metrics.unassigned == 5
        assert project.metrics.inherited_risk_score == 17.0

    def test_missing_total_header(self):
        client = make_client(lambda request: httpx.Response(200, json=[project_json(1)]))

        page = client.get_projects(page_size=10, page_number=1)

        assert page.total_count is None
        assert len(page.items) == 1

    def test_sends_api_key(self):
        headers = []

        def handler(request):
            headers.append(request.headers)
            return httpx.Response(200, json=[], headers={"X-Total-Count": "0"})

        client = make_client(handler, api_key="my-key")
        client.get_projects(page_size=10, page_number=1)

        assert headers[0]["X-Api-Key"] == "my-key"
        assert headers[0]["User-Agent"].startswith("dtrack-exporter/")


class TestPortfolioMetrics:
    """Tests for the portfolio metrics operation."""

    def test_get_portfolio_metrics(self):
        def handler(request):
            assert request.url.path == "/api/v1/metrics/portfolio/current"
            return httpx.Response(
                200,
                json={
                    "inheritedRiskScore": 1234.5,
                    "critical": 10,
                    "high": 20,
                    "medium": 30,
                    "low": 40,
                    "unassigned": 50,
                    "findingsAudited": 7,
                    "findingsUnaudited": 8,
                },
            )

        metrics = make_client(handler).get_portfolio_metrics()

        assert metrics.inherited_risk_score == 1234.5
        assert metrics.critical == 10
        assert metrics.unassigned == 50
        assert metrics.findings_audited == 7
        assert metrics.findings_unaudited == 8


class TestErrors:
    """Tests for error wrapping and startup validation."""

    def test_http_error_status(self):
        client = make_client(lambda request: httpx.Response(500, text="oops"))

        with pytest.raises(UpstreamError) as exc_info:
            client.get_projects(page_size=10, page_number=1)

        assert exc_info.value.status_code == 500

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(UpstreamError) as exc_info:
            client.get_portfolio_metrics()

        assert exc_info.value.status_code is None

    def test_validate_success(self):
        def handler(request):
            if request.url.path == "/api/version":
                return httpx.Response(200, json={"version": "4.11.0"})
            return httpx.Response(200, json=[], headers={"X-Total-Count": "0"})

        assert make_client(handler).validate()["version"] == "4.11.0"

    def test_validate_rejected_key(self):
        def handler(request):
            if request.url.path == "/api/version":
                return httpx.Response(200, json={"version": "4.11.0"})
            return httpx.Response(401)

        with pytest.raises(ConfigurationError, match="API key"):
            make_client(handler).validate()

    def test_validate_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ConfigurationError, match="Cannot reach"):
            make_client(handler).validate()

    def test_validate_non_json_answer(self):
        def handler(request):
            return httpx.Response(
                200,
                text="<html><body>Sign in to continue</body></html>",
                headers={"Content-Type": "text/html"},
            )

        with pytest.raises(ConfigurationError, match="did not answer like a Dependency-Track"):
            make_client(handler).validate()

    def test_context_manager(self):
        with make_client(lambda request: httpx.Response(200)) as client:
            assert client.address == "http://dtrack.local"
