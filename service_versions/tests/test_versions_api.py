"""
API tests for the Versions service.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_versions.app.caching.kv_store import MemoryKeyValueStore
from service_versions.app.main import VersionsService
from shared.config import get_config
from shared.test_helpers import GitHubStub, make_raw_release

UPDATE_HEADERS = {"Authorization": "Bearer s3cret"}


def _releases():
    return [
        make_raw_release("0.6.0", release_id=3, body="c-0.6.0", published_at="2024-06-01T00:00:00Z"),
        make_raw_release("0.5.1", release_id=2, body="c-0.5.1", published_at="2024-03-01T00:00:00Z"),
        make_raw_release("0.5.0", release_id=1, body="c-0.5.0", published_at="2023-12-01T00:00:00Z"),
    ]


def _vary_tokens(response):
    return [token.strip() for token in response.headers.get("Vary", "").split(",") if token.strip()]


class TestVersionsAPI:
    """Test cases for the versions endpoints."""

    @pytest.fixture
    def stub(self):
        return GitHubStub(_releases())

    @pytest.fixture
    def store(self):
        return MemoryKeyValueStore()

    @pytest.fixture
    def service(self, stub, store):
        config = get_config("versions", 8000, cache_backend="memory", github_token="gh-token")
        return VersionsService(
            config,
            store=store,
            auth_store=MemoryKeyValueStore({"UPDATE_TOKEN": "s3cret"}),
            upstream_transport=stub.transport(),
        )

    @pytest.fixture
    def client(self, service):
        return TestClient(service.app)

    def test_list_versions(self, client):
        """Test the full snapshot listing."""
        response = client.get("/versions/v1")

        assert response.status_code == 200
        body = response.json()
        assert body["error_code"] == 0
        assert body["message"] is None
        assert body["stale"] is False
        assert body["source"] == "fresh"
        assert list(body["result"]) == ["0.6.0", "0.5.1", "0.5.0"]
        assert body["result"]["0.6.0"]["minimum_runtime_version"] == "8.1"
        assert "*" not in _vary_tokens(response)

    def test_second_read_is_served_from_cache(self, client, stub):
        """Test that repeated reads do not go upstream again."""
        client.get("/versions/v1")
        calls = len(stub.requests)

        response = client.get("/versions/v1")

        assert response.json()["source"] == "cache"
        assert len(stub.requests) == calls

    def test_empty_listing_sets_vary(self):
        """Test that an empty result is marked uncacheable."""
        stub = GitHubStub([])
        service = VersionsService(
            get_config("versions", 8000, cache_backend="memory"),
            store=MemoryKeyValueStore(),
            auth_store=MemoryKeyValueStore(),
            upstream_transport=stub.transport(),
        )

        client = TestClient(service.app)
        response = client.get("/versions/v1")

        assert response.status_code == 200
        assert response.json()["result"] == {}
        assert "*" in _vary_tokens(response)

        cross_origin = client.get("/versions/v1", headers={"Origin": "https://billing.example"})
        assert "*" in _vary_tokens(cross_origin)

    def test_get_version(self, client):
        """Test lookup of an exact version."""
        response = client.get("/versions/v1/0.5.1")

        assert response.status_code == 200
        result = response.json()["result"]
        assert result["version"] == "0.5.1"
        assert result["changelog"] == "c-0.5.1"
        assert result["download_url"].endswith("/0.5.1/FOSSBilling.zip")

    def test_get_latest_version(self, client):
        """Test the latest alias."""
        response = client.get("/versions/v1/latest")

        assert response.status_code == 200
        assert response.json()["result"]["version"] == "0.6.0"

    def test_get_unknown_version(self, client):
        """Test the not-found envelope."""
        response = client.get("/versions/v1/9.9.9")

        assert response.status_code == 404
        body = response.json()
        assert body["result"] is None
        assert body["error_code"] == 404
        assert body["message"] == "FOSSBilling version 9.9.9 does not appear to exist."

    def test_get_version_with_no_releases(self):
        """Test the not-found envelope when nothing is published."""
        stub = GitHubStub([])
        service = VersionsService(
            get_config("versions", 8000, cache_backend="memory"),
            store=MemoryKeyValueStore(),
            auth_store=MemoryKeyValueStore(),
            upstream_transport=stub.transport(),
        )

        response = TestClient(service.app).get("/versions/v1/latest")

        assert response.status_code == 404
        assert response.json()["message"].startswith("No releases are currently available.")
        assert stub.release_calls == 2

    def test_count(self, client):
        """Test the release count."""
        response = client.get("/versions/v1/count")

        assert response.status_code == 200
        assert response.json()["result"] == 3

    def test_build_changelog(self, client):
        """Test the concatenated changelog since a version."""
        response = client.get("/versions/v1/build_changelog/0.5.0")

        assert response.status_code == 200
        assert response.json()["result"] == "c-0.6.0\nc-0.5.1"

    def test_build_changelog_rejects_invalid_version(self, client, service):
        """Test that validation happens before the snapshot is loaded."""
        with patch.object(service.release_service, "get_releases", new_callable=AsyncMock) as mock_get:
            response = client.get("/versions/v1/build_changelog/not-a-version")

        assert response.status_code == 400
        assert response.json()["message"] == "'not-a-version' is not a valid semantic version."
        mock_get.assert_not_called()

    def test_update_requires_authorization(self, client, stub):
        """Test that refresh without a credential never reaches upstream."""
        response = client.get("/versions/v1/update")

        assert response.status_code == 401
        assert response.json()["error_code"] == 401
        assert stub.requests == []

    def test_update_rejects_wrong_token(self, client, stub):
        """Test that a wrong credential never reaches upstream."""
        response = client.get("/versions/v1/update", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert stub.requests == []

    def test_update_refreshes_cache(self, client, stub, store):
        """Test a successful forced refresh."""
        client.get("/versions/v1")
        stub.releases_queue.append(_releases() + [make_raw_release("0.6.1", release_id=4)])

        response = client.get("/versions/v1/update", headers=UPDATE_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["result"] == "Releases cache updated successfully with 4 releases."
        assert body["source"] == "fresh"
        assert client.get("/versions/v1/latest").json()["result"]["version"] == "0.6.1"

    def test_update_reports_partial_errors(self, service, stub):
        """Test the message when some lookups failed."""
        stub.manifests["0.5.0"] = httpx.Response(500, json={"message": "Server Error"})

        response = TestClient(service.app).get("/versions/v1/update", headers=UPDATE_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["result"] == "Releases cache updated with 3 releases (some errors occurred)."
        assert body["details"] == {"http_status": 500, "error_code": "unknown_error"}

    def test_update_failure_with_cache_serves_stale(self, client, stub):
        """Test that a failed refresh keeps serving the previous snapshot."""
        client.get("/versions/v1")
        stub.releases_queue.append(httpx.Response(401, json={"message": "Bad credentials"}))

        response = client.get("/versions/v1/update", headers=UPDATE_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["stale"] is True
        assert body["source"] == "stale"
        assert body["warning"] == "Bad credentials"
        assert body["details"]["error_code"] == "auth_error"

    def test_update_failure_without_cache(self, client, stub):
        """Test the refresh failure envelope."""
        stub.releases_queue.append(httpx.Response(401, json={"message": "Bad credentials"}))

        response = client.get("/versions/v1/update", headers=UPDATE_HEADERS)

        assert response.status_code == 503
        body = response.json()
        assert body["message"] == "Failed to fetch releases: Bad credentials"
        assert body["details"] == {"http_status": 401, "error_code": "auth_error"}

    def test_unavailable_without_cache(self, client, stub):
        """Test that an outage with nothing cached is a 503."""
        stub.releases_error = httpx.ConnectError("connection refused")

        response = client.get("/versions/v1")

        assert response.status_code == 503
        body = response.json()
        assert body["result"] is None
        assert body["message"] == "Unable to fetch releases and no cached data available"
        assert body["details"]["error_code"] == "network_error"

    def test_gateway_timeout_detail_block(self, client, stub):
        """Test that a 504 from GitHub is reported as a network error."""
        stub.releases_queue.append(httpx.Response(504, json={"message": "Gateway Timeout"}))

        response = client.get("/versions/v1/count")

        assert response.status_code == 503
        assert response.json()["details"] == {"http_status": None, "error_code": "network_error"}

    def test_releases_support_matrix(self, client):
        """Test the deprecated support route and its headers."""
        response = client.get("/releases/v1")

        assert response.status_code == 200
        assert response.headers["Deprecation"] == "true"
        assert "successor-version" in response.headers["Link"]
        assert response.json()["result"]["versions"] == [
            {"version": "0.5.0", "support": "insecure"},
            {"version": "0.5.1", "support": "insecure"},
            {"version": "0.6.0", "support": "latest"},
        ]

    def test_stats(self, client):
        """Test the statistics payload."""
        response = client.get("/stats/v1/data")

        assert response.status_code == 200
        result = response.json()["result"]
        assert [entry["version_line"] for entry in result["patches_per_release"]] == ["0.5.x", "0.6.x"]
        assert result["releases_per_year"] == [
            {"year": "2023", "release_count": 1},
            {"year": "2024", "release_count": 2},
        ]

    def test_health(self, client):
        """Test the health endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["service"] == "versions"
        assert body["status"] == "ok"
        assert body["dependencies"] == {"cache": "ok"}

    def test_metrics_exposes_release_counters(self, client):
        """Test that release provenance reaches the metrics endpoint."""
        client.get("/versions/v1")
        client.get("/versions/v1")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'release_source_total{source="cache"} 1.0' in response.text
        assert 'release_source_total{source="fresh"} 1.0' in response.text

    def test_request_id_is_echoed(self, client):
        """Test request correlation headers."""
        response = client.get("/versions/v1/count", headers={"X-Request-Id": "req-123"})

        assert response.headers["X-Request-Id"] == "req-123"
