"""
API request and response models for the orgauth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

Field descriptions come from core.schema.CONFIG_FIELDS so the OpenAPI document
and the published field listing never drift apart.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.errors import ValidationError
from core.models import ConfigRequest
from core.schema import CONFIG_FIELDS, describe
from core.tokenutil import parse_duration, split_comma_list

_DURATION_FIELDS = ("ttl", "max_ttl", "token_ttl", "token_max_ttl", "token_explicit_max_ttl", "token_period")
_LIST_FIELDS = ("token_policies", "token_bound_cidrs")


def _deprecated(name: str) -> dict:
    return {"deprecated": True} if CONFIG_FIELDS[name].deprecated else {}


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class ConfigWriteRequest(BaseModel):
    """Request body for POST /api/v1/auth/github/config.

    Every field is optional: only the fields present in the body are merged
    into the stored config. Durations accept integer seconds or unit strings
    ("1h", "90m"); list fields accept a JSON list or a comma-separated string.
    Unknown keys are rejected with 422.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    organization: Optional[str] = Field(default=None, max_length=255, description=describe("organization"))
    organization_id: Optional[int] = Field(default=None, ge=0, description=describe("organization_id"))
    base_url: Optional[str] = Field(default=None, max_length=2048, description=describe("base_url"))
    ttl: Optional[int] = Field(default=None, description=describe("ttl"), json_schema_extra=_deprecated("ttl"))
    max_ttl: Optional[int] = Field(
        default=None, description=describe("max_ttl"), json_schema_extra=_deprecated("max_ttl")
    )

    token_bound_cidrs: Optional[list[str]] = Field(default=None, description=describe("token_bound_cidrs"))
    token_explicit_max_ttl: Optional[int] = Field(default=None, description=describe("token_explicit_max_ttl"))
    token_max_ttl: Optional[int] = Field(default=None, description=describe("token_max_ttl"))
    token_no_default_policy: Optional[bool] = Field(default=None, description=describe("token_no_default_policy"))
    token_num_uses: Optional[int] = Field(default=None, description=describe("token_num_uses"))
    token_period: Optional[int] = Field(default=None, description=describe("token_period"))
    token_policies: Optional[list[str]] = Field(default=None, description=describe("token_policies"))
    token_type: Optional[str] = Field(default=None, max_length=32, description=describe("token_type"))
    token_ttl: Optional[int] = Field(default=None, description=describe("token_ttl"))

    @field_validator(*_DURATION_FIELDS, mode="before")
    @classmethod
    def coerce_duration(cls, value: Any) -> Optional[int]:
        """Turn "1h" / "3600" / 3600 into integer seconds before type checks."""
        if value is None:
            return None
        try:
            return parse_duration(value)
        except ValidationError as exc:
            raise ValueError(exc.message) from exc

    @field_validator(*_LIST_FIELDS, mode="before")
    @classmethod
    def coerce_list(cls, value: Any) -> Optional[list[str]]:
        """Accept "a,b" as well as ["a", "b"]."""
        if value is None:
            return None
        if not isinstance(value, (str, list, tuple)):
            raise ValueError("expected a list or a comma-separated string")
        return split_comma_list(value)

    def to_request(self) -> ConfigRequest:
        """Map to the domain request. Fields left out of the body stay None."""
        return ConfigRequest(**self.model_dump(exclude_unset=True))


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ConfigResponse(BaseModel):
    """Response body for GET (and warning-carrying POST) on the config path."""

    model_config = ConfigDict(frozen=True)

    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)


class FieldInfo(BaseModel):
    """One entry of GET /api/v1/auth/github/config/fields."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    description: str
    required: bool
    deprecated: bool
    display_name: str = ""
    display_group: str = ""
    default: Any = None


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
