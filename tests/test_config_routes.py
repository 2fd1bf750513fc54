"""
tests/test_config_routes.py -- Integration tests for the config API routes.

These tests exercise the full stack: FastAPI routing -> operator-token
dependency -> request model coercion -> GitHubConfigBackend -> exception
handlers -> response envelope. The backend runs on InMemoryStorage with a
StubResolver, so no network or disk is touched.

Coverage:
  - Auth failures: 401 on every config route without a valid operator token
  - Read: 204 when unset, 200 with effective values after a write
  - Write: 204 on success, 400 / 500 / 422 error envelopes, nothing persisted
  - Field listing
  - Rate limit: 429 once CONFIG_WRITE_RATE_LIMIT is exhausted

Fixtures used (from conftest.py):
  - api_client: ApiHarness(client, headers, storage, resolver)
"""

from __future__ import annotations

import json

from conftest import TEST_ORG_ID, ApiHarness

from core.config import get_settings
from core.models import CONFIG_KEY

CONFIG_URL = "/api/v1/auth/github/config"
FIELDS_URL = "/api/v1/auth/github/config/fields"


class TestConfigAuthFailure:
    """Requests without the operator token must return 401."""

    def test_read_unauthenticated(self, api_client: ApiHarness) -> None:
        """GET config without Authorization header must return 401."""
        resp = api_client.client.get(CONFIG_URL)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_write_unauthenticated(self, api_client: ApiHarness) -> None:
        """POST config without a token must return 401 and write nothing."""
        resp = api_client.client.post(CONFIG_URL, json={"organization": "acme"})
        assert resp.status_code == 401
        assert api_client.storage.get(CONFIG_KEY) is None
        assert api_client.resolver.calls == []

    def test_wrong_token(self, api_client: ApiHarness) -> None:
        """A bearer token that is not the operator token must return 401."""
        resp = api_client.client.get(CONFIG_URL, headers={"Authorization": "Bearer not-the-token"})
        assert resp.status_code == 401

    def test_fields_unauthenticated(self, api_client: ApiHarness) -> None:
        """GET fields without a token must return 401."""
        assert api_client.client.get(FIELDS_URL).status_code == 401

    def test_api_key_header_accepted(self, api_client: ApiHarness) -> None:
        """X-API-Key carrying the operator token is accepted like a bearer token."""
        resp = api_client.client.get(CONFIG_URL, headers={"X-API-Key": get_settings().operator_token})
        assert resp.status_code == 204


class TestConfigRead:
    def test_read_unset_returns_204(self, api_client: ApiHarness) -> None:
        """GET before any write is 'not configured', not an error."""
        resp = api_client.client.get(CONFIG_URL, headers=api_client.headers)
        assert resp.status_code == 204
        assert resp.content == b""

    def test_read_after_write(self, api_client: ApiHarness) -> None:
        """GET after a write returns the stored fields with the resolved ID."""
        client, headers = api_client.client, api_client.headers
        client.post(CONFIG_URL, json={"organization": "acme", "token_policies": "dev,ops"}, headers=headers)

        resp = client.get(CONFIG_URL, headers=headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["warnings"] == []
        data = body["data"]
        assert data["organization"] == "acme"
        assert data["organization_id"] == TEST_ORG_ID
        assert data["token_policies"] == ["dev", "ops"]
        assert "ttl" not in data

    def test_read_reports_effective_legacy_ttl(self, api_client: ApiHarness) -> None:
        """A legacy ttl surfaces as both ttl and token_ttl on read."""
        client, headers = api_client.client, api_client.headers
        client.post(CONFIG_URL, json={"organization": "acme", "ttl": "1h"}, headers=headers)
        data = client.get(CONFIG_URL, headers=headers).json()["data"]
        assert data["token_ttl"] == 3600
        assert data["ttl"] == 3600

        stored = json.loads(api_client.storage.get(CONFIG_KEY))
        assert stored["token_ttl"] == 0

    def test_corrupt_record_is_500(self, api_client: ApiHarness) -> None:
        """An unreadable stored record is a storage failure with a generic message."""
        api_client.storage.put(CONFIG_KEY, b"{broken")
        resp = api_client.client.get(CONFIG_URL, headers=api_client.headers)
        assert resp.status_code == 500
        error = resp.json()["error"]
        assert error["code"] == "storage_error"
        assert error["message"] == "The configuration store is unavailable."


class TestConfigWrite:
    def test_write_returns_204(self, api_client: ApiHarness) -> None:
        """POST with a valid organization resolves the ID and returns 204."""
        resp = api_client.client.post(CONFIG_URL, json={"organization": "acme"}, headers=api_client.headers)
        assert resp.status_code == 204
        assert api_client.resolver.calls == [("acme", None)]
        assert json.loads(api_client.storage.get(CONFIG_KEY))["organization_id"] == TEST_ORG_ID

    def test_write_with_id_skips_lookup(self, api_client: ApiHarness) -> None:
        """Supplying organization_id means GitHub is never called."""
        resp = api_client.client.post(
            CONFIG_URL, json={"organization": "acme", "organization_id": 55}, headers=api_client.headers
        )
        assert resp.status_code == 204
        assert api_client.resolver.calls == []

    def test_duration_strings_are_accepted(self, api_client: ApiHarness) -> None:
        """Durations may be sent as unit strings or numeric strings."""
        resp = api_client.client.post(
            CONFIG_URL,
            json={"organization": "acme", "token_ttl": "30m", "token_max_ttl": "7200"},
            headers=api_client.headers,
        )
        assert resp.status_code == 204
        stored = json.loads(api_client.storage.get(CONFIG_KEY))
        assert stored["token_ttl"] == 1800
        assert stored["token_max_ttl"] == 7200

    def test_missing_organization_is_400(self, api_client: ApiHarness) -> None:
        """POST without organization (and nothing stored) is a client error."""
        resp = api_client.client.post(CONFIG_URL, json={"token_ttl": 60}, headers=api_client.headers)
        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "missing_organization"
        assert error["message"] == "organization is a required parameter"
        assert api_client.storage.get(CONFIG_KEY) is None

    def test_bad_base_url_is_400(self, api_client: ApiHarness) -> None:
        """An unparsable base_url is rejected before GitHub is contacted."""
        resp = api_client.client.post(
            CONFIG_URL, json={"organization": "acme", "base_url": "not a url"}, headers=api_client.headers
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_base_url"
        assert api_client.resolver.calls == []

    def test_token_rule_violation_is_400(self, api_client: ApiHarness) -> None:
        """token_ttl above token_max_ttl is rejected with the rule's message."""
        resp = api_client.client.post(
            CONFIG_URL,
            json={"organization": "acme", "token_ttl": 7200, "token_max_ttl": 3600},
            headers=api_client.headers,
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "'token_ttl' cannot be greater than 'token_max_ttl'"

    def test_resolution_failure_is_500(self, api_client: ApiHarness) -> None:
        """A failed lookup returns 500 telling the operator to set organization_id."""
        api_client.resolver.error = "GitHub returned 404 for organization 'ghost'"
        resp = api_client.client.post(CONFIG_URL, json={"organization": "ghost"}, headers=api_client.headers)
        assert resp.status_code == 500
        error = resp.json()["error"]
        assert error["code"] == "resolution_failed"
        assert "you must manually set it in the config" in error["message"]
        assert api_client.storage.get(CONFIG_KEY) is None

    def test_unknown_field_is_422(self, api_client: ApiHarness) -> None:
        """Keys outside the field schema are rejected, not silently dropped."""
        resp = api_client.client.post(
            CONFIG_URL, json={"organization": "acme", "organisation": "typo"}, headers=api_client.headers
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"
        assert api_client.storage.get(CONFIG_KEY) is None

    def test_bad_duration_is_422(self, api_client: ApiHarness) -> None:
        """A duration that cannot be parsed fails request validation."""
        resp = api_client.client.post(
            CONFIG_URL, json={"organization": "acme", "token_ttl": "forever"}, headers=api_client.headers
        )
        assert resp.status_code == 422

    def test_negative_organization_id_is_422(self, api_client: ApiHarness) -> None:
        """organization_id must be >= 0 at the transport boundary."""
        resp = api_client.client.post(
            CONFIG_URL, json={"organization": "acme", "organization_id": -3}, headers=api_client.headers
        )
        assert resp.status_code == 422

    def test_partial_update_over_http(self, api_client: ApiHarness) -> None:
        """A second POST with one field keeps every other stored field."""
        client, headers = api_client.client, api_client.headers
        client.post(
            CONFIG_URL,
            json={"organization": "acme", "base_url": "https://ghe.example.com/api/v3"},
            headers=headers,
        )
        client.post(CONFIG_URL, json={"token_type": "service"}, headers=headers)
        data = client.get(CONFIG_URL, headers=headers).json()["data"]
        assert data["organization"] == "acme"
        assert data["base_url"] == "https://ghe.example.com/api/v3/"
        assert data["token_type"] == "service"


class TestFieldsRoute:
    def test_lists_every_field(self, api_client: ApiHarness) -> None:
        """GET fields returns the schema, with ttl / max_ttl flagged deprecated."""
        resp = api_client.client.get(FIELDS_URL, headers=api_client.headers)
        assert resp.status_code == 200
        fields = {f["name"]: f for f in resp.json()}
        assert fields["organization"]["required"] is True
        assert fields["ttl"]["deprecated"] is True
        assert fields["max_ttl"]["deprecated"] is True
        assert fields["token_ttl"]["type"] == "duration_second"
        assert fields["base_url"]["display_name"] == "Base URL"


class TestRateLimit:
    def test_write_is_rate_limited(self, api_client: ApiHarness, monkeypatch) -> None:
        """Writes past CONFIG_WRITE_RATE_LIMIT return 429 with Retry-After."""
        monkeypatch.setattr(get_settings(), "config_write_rate_limit", "2/minute")
        client, headers = api_client.client, api_client.headers
        body = {"organization": "acme", "organization_id": 1}

        assert client.post(CONFIG_URL, json=body, headers=headers).status_code == 204
        assert client.post(CONFIG_URL, json=body, headers=headers).status_code == 204
        resp = client.post(CONFIG_URL, json=body, headers=headers)
        assert resp.status_code == 429
        assert resp.json()["error"]["code"] == "rate_limited"
        assert "Retry-After" in resp.headers

    def test_reads_are_not_write_limited(self, api_client: ApiHarness, monkeypatch) -> None:
        """The write limit does not apply to GET."""
        monkeypatch.setattr(get_settings(), "config_write_rate_limit", "1/minute")
        for _ in range(3):
            assert api_client.client.get(CONFIG_URL, headers=api_client.headers).status_code == 204
