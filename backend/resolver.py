"""
backend/resolver.py -- Resolve a GitHub organization name to its numeric ID.

The numeric ID is what login compares, so a config is never persisted without
one. When the operator does not supply organization_id, the write handler
calls OrganizationResolver.resolve() exactly once:

    GET {base_url}orgs/{organization}

The lookup is async (httpx.AsyncClient) and awaited inside the request task,
so cancelling the request cancels the in-flight HTTP call with it.

Failure modes, all raised as ResolutionError:
  - a base_url override that does not parse (no request is sent)
  - transport error (DNS, TLS, timeout, connection reset)
  - any status other than 200 from GitHub (404 unknown org, 401 bad token, 403 rate limit)
  - a body that is not a JSON object
  - a 200 body whose "id" is missing or 0 -- treated as "not found", since a
    config bound to ID 0 would not pin login to any specific organization.

The credential is injected by the caller (from Settings, never from the
request) and is only sent as a bearer token on this one request.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from core.errors import ResolutionError, ValidationError
from core.models import normalize_base_url, parse_base_url

logger = logging.getLogger("orgauth.resolver")

DEFAULT_GITHUB_API_URL = "https://api.github.com/"


class OrganizationResolver:
    """Looks up organization IDs against the GitHub REST API.

    Args:
        token:     Credential for the lookup. Empty means unauthenticated,
                   which works for public organizations at a low rate limit.
        base_url:  Default API endpoint. A per-call override wins over it.
        timeout:   Seconds for connect/read on the single request.
        transport: Optional httpx transport, used by tests to stub GitHub.
    """

    def __init__(
        self,
        token: str = "",
        base_url: str = DEFAULT_GITHUB_API_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._token = token
        self.base_url = normalize_base_url(base_url) or DEFAULT_GITHUB_API_URL
        self._timeout = timeout
        self._transport = transport

    def _endpoint(self, base_url_override: Optional[str]) -> str:
        """Pick the API base: the override when set, else the default.

        An override that does not parse is an error, never a silent switch to
        the default endpoint.
        """
        if not base_url_override:
            return self.base_url
        candidate = normalize_base_url(base_url_override)
        try:
            parse_base_url(candidate)
        except ValidationError as exc:
            raise ResolutionError(f"invalid base_url override: {exc.message}") from exc
        return candidate

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "orgauth",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def resolve(self, organization: str, base_url_override: Optional[str] = None) -> int:
        """Return the numeric ID of `organization`. Raises ResolutionError."""
        base = self._endpoint(base_url_override)
        url = f"{base}orgs/{quote(organization, safe='')}"

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.get(url, headers=self._headers())
        except httpx.HTTPError as exc:
            raise ResolutionError(f"GitHub request failed: {exc}") from exc

        if response.status_code != 200:
            raise ResolutionError(
                f"GitHub returned {response.status_code} for organization {organization!r}",
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ResolutionError(f"GitHub returned an unreadable body: {exc}") from exc
        if not isinstance(payload, dict):
            raise ResolutionError("GitHub returned an unexpected body")

        org_id = payload.get("id") or 0
        if not isinstance(org_id, int) or isinstance(org_id, bool) or org_id <= 0:
            raise ResolutionError(f"organization_id not found for {organization}")

        logger.info("Resolved organization %s to id %d via %s", organization, org_id, base)
        return org_id
