"""
core/models.py -- The persisted configuration entity and the typed write request.

GitHubConfig is the single record this backend stores (under the key
"config"). ConfigRequest is what a caller sends to change it: every field is
optional and None means "not supplied", which is how partial updates are
expressed without a dynamic field map.

Invariants kept by the write path (backend/handlers.py):
  - organization is never empty once a config exists.
  - organization_id is never 0 once a config has been written. 0 only means
    "unresolved" while a single write is in flight.
  - base_url, when set, ends with exactly one "/".

TTL fields: ttl / max_ttl are the deprecated names for token_ttl /
token_max_ttl. The record keeps whichever the operator wrote; effective()
reconciles them for every consumer without touching the stored values.

Layer rule: core/ is the kernel. No imports from api/, backend/, or storage/.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from typing import Optional
from urllib.parse import SplitResult, urlsplit

from core.errors import StorageError, ValidationError
from core.tokenutil import TokenFieldsRequest, TokenParams

# Storage key for the one configuration record.
CONFIG_KEY = "config"


@dataclass
class GitHubConfig(TokenParams):
    """Configuration for the GitHub organization auth method.

    organization_id is the trust anchor: login compares IDs, so renaming the
    organization on GitHub does not change which account is trusted.
    """

    organization: str = ""
    organization_id: int = 0
    base_url: str = ""
    ttl: int = 0  # deprecated, see token_ttl
    max_ttl: int = 0  # deprecated, see token_max_ttl

    def effective(self) -> "GitHubConfig":
        """Return a copy with legacy TTLs folded into the current fields.

        If token_ttl is 0 and ttl is set, ttl is the effective token_ttl (same
        for max). The receiver is not modified.
        """
        eff = replace(
            self,
            token_bound_cidrs=list(self.token_bound_cidrs),
            token_policies=list(self.token_policies),
        )
        if eff.token_ttl == 0 and eff.ttl > 0:
            eff.token_ttl = eff.ttl
        if eff.token_max_ttl == 0 and eff.max_ttl > 0:
            eff.token_max_ttl = eff.max_ttl
        return eff

    def to_json(self) -> bytes:
        return json.dumps(asdict(self), sort_keys=True).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> "GitHubConfig":
        """Decode a stored entry. Unknown keys are ignored; missing keys default."""
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"error reading configuration: {exc}") from exc
        if not isinstance(payload, dict):
            raise StorageError("error reading configuration: entry is not a JSON object")
        known = {f.name for f in fields(cls)}
        try:
            return cls(**{k: v for k, v in payload.items() if k in known})
        except TypeError as exc:
            raise StorageError(f"error reading configuration: {exc}") from exc


@dataclass
class ConfigRequest(TokenFieldsRequest):
    """A write to the config endpoint. None means the field was not supplied."""

    organization: Optional[str] = None
    organization_id: Optional[int] = None
    base_url: Optional[str] = None
    ttl: Optional[int] = None
    max_ttl: Optional[int] = None


# ---------------------------------------------------------------------------
# base_url rules
# ---------------------------------------------------------------------------


def normalize_base_url(base_url: str) -> str:
    """Return base_url with exactly one trailing "/". Empty stays empty."""
    base_url = base_url.strip()
    if not base_url:
        return ""
    return base_url.rstrip("/") + "/"


def parse_base_url(base_url: str) -> SplitResult:
    """Parse a normalized base_url. Raises ValidationError if it is not usable.

    The override must be an absolute http(s) URL because the GitHub client
    resolves "orgs/<name>" relative to it.
    """
    try:
        parsed = urlsplit(base_url)
        _ = parsed.port  # raises ValueError for a non-numeric or out-of-range port
    except ValueError as exc:
        raise ValidationError(f"error parsing given base_url: {exc}", code="invalid_base_url") from exc
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(
            f"error parsing given base_url: {base_url!r} is not an absolute http(s) URL",
            code="invalid_base_url",
        )
    return parsed
