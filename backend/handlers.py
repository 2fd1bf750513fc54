"""
backend/handlers.py -- Write and read handlers for the GitHub auth config.

GitHubConfigBackend is the only place that loads, merges, validates and
persists GitHubConfig. The HTTP layer (api/routes/v1/config.py) and any other
caller go through it.

Write (single shot, all-or-nothing):
  1. Load the stored config, or start from an empty one.
  2. Merge organization; an empty result is a ValidationError.
  3. Merge organization_id.
  4. Normalize + parse base_url; a parse failure is a ValidationError.
  5. organization_id still 0 -> resolve it via GitHub. Failure is a
     ResolutionError and nothing is written.
  6. Merge + validate the shared token fields.
  7. Migrate the deprecated ttl / max_ttl fields, then check the effective
     token_ttl against the effective token_max_ttl.
  8. One put of the serialized record.
  9. None on success, or a BackendResponse when warnings were collected.

Any exception before step 8 leaves storage exactly as it was. There is no
retry inside the handler and no lock across load and put: concurrent writers
race and the last put wins.

Read:
  None when nothing is stored (distinct from a StorageError). Otherwise the
  record is projected with effective TTLs; the stored values are untouched.

Dependencies are injected: storage (get/put) and a resolver. The resolver is
built with the operator credential from Settings, so this module never reads
the environment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from core.errors import ResolutionError, ValidationError
from core.models import CONFIG_KEY, ConfigRequest, GitHubConfig, normalize_base_url, parse_base_url
from core.tokenutil import (
    check_ttl_bounds,
    parse_duration,
    parse_token_fields,
    populate_token_data,
    upgrade_value,
)
from storage.store import Storage

logger = logging.getLogger("orgauth.backend")


class Resolver(Protocol):
    async def resolve(self, organization: str, base_url_override: Optional[str] = None) -> int: ...


@dataclass
class BackendResponse:
    """Handler output: response data plus any warnings for the caller."""

    data: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


class GitHubConfigBackend:
    """Config lifecycle for the GitHub organization auth method.

    Usage:
        backend = GitHubConfigBackend(SQLStorage(url), OrganizationResolver(token=...))
        await backend.write_config(ConfigRequest(organization="acme"))
        resp = backend.read_config()
    """

    def __init__(self, storage: Storage, resolver: Resolver) -> None:
        self.storage = storage
        self.resolver = resolver

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load_config(self) -> GitHubConfig | None:
        """Return the stored config exactly as persisted, or None.

        No effective-TTL folding happens here: the write path must merge onto
        the raw record, otherwise a legacy ttl would be copied into token_ttl
        on the next save. Consumers that need effective values call
        .effective() on the result.
        """
        raw = self.storage.get(CONFIG_KEY)
        if raw is None:
            return None
        return GitHubConfig.from_json(raw)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def write_config(self, request: ConfigRequest) -> BackendResponse | None:
        """Merge `request` into the stored config and persist it.

        Raises ValidationError, ResolutionError or StorageError. Storage is
        only touched by the final put, so every raise leaves it unchanged.
        """
        warnings: list[str] = []

        config = self.load_config() or GitHubConfig()

        if request.organization is not None:
            config.organization = request.organization.strip()
        if not config.organization:
            raise ValidationError("organization is a required parameter", code="missing_organization")

        if request.organization_id is not None:
            if request.organization_id < 0:
                raise ValidationError("organization_id cannot be negative", code="invalid_organization_id")
            config.organization_id = request.organization_id

        if request.base_url is not None:
            base_url = normalize_base_url(request.base_url)
            if base_url:
                parse_base_url(base_url)
            config.base_url = base_url

        if config.organization_id == 0:
            try:
                config.organization_id = await self.resolver.resolve(config.organization, config.base_url or None)
            except ResolutionError as exc:
                message = f"unable to fetch the organization_id, you must manually set it in the config: {exc}"
                logger.error(message)
                raise ResolutionError(message) from exc

        parse_token_fields(request, config)

        # token_ttl / token_max_ttl were merged (and parsed) just above.
        config.ttl, config.token_ttl = upgrade_value(
            _duration_or_none(request.ttl),
            config.token_ttl if request.token_ttl is not None else None,
            config.ttl,
            config.token_ttl,
        )
        config.max_ttl, config.token_max_ttl = upgrade_value(
            _duration_or_none(request.max_ttl),
            config.token_max_ttl if request.token_max_ttl is not None else None,
            config.max_ttl,
            config.token_max_ttl,
        )

        # The bound must also hold with legacy ttl / max_ttl folded in.
        effective = config.effective()
        check_ttl_bounds(effective.token_ttl, effective.token_max_ttl)

        self.storage.put(CONFIG_KEY, config.to_json())
        logger.info(
            "Saved config for organization %s (id %d)",
            config.organization,
            config.organization_id,
        )

        if not warnings:
            return None
        return BackendResponse(warnings=warnings)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read_config(self) -> BackendResponse | None:
        """Project the stored config into a response map, or None if unset."""
        config = self.load_config()
        if config is None:
            return None

        effective = config.effective()
        data: dict[str, Any] = {
            "organization_id": config.organization_id,
            "organization": config.organization,
            "base_url": config.base_url,
        }
        populate_token_data(effective, data)

        # Deprecated names report the effective values, and only when set.
        if effective.token_ttl > 0:
            data["ttl"] = effective.token_ttl
        if effective.token_max_ttl > 0:
            data["max_ttl"] = effective.token_max_ttl

        return BackendResponse(data=data)


def _duration_or_none(value) -> int | None:
    return None if value is None else parse_duration(value)
