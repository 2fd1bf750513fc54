"""
core/tokenutil.py -- Shared token parameters (TTL, max TTL, policies, CIDRs...).

Every auth backend that issues tokens carries the same set of token_* fields.
This module owns them:

  TokenParams          -- the persisted shape (mixed into GitHubConfig).
  TokenFieldsRequest   -- the typed request shape; None means "not supplied".
  add_token_fields()   -- schema declarations for the token_* fields.
  parse_token_fields() -- partial merge of a request into TokenParams + validation.
  populate_token_data()-- projection into a response map.
  upgrade_value()      -- the legacy -> current TTL migration policy.

Durations are integer seconds everywhere: in requests (after parse_duration),
in the persisted JSON, and in responses.

Layer rule: core/ is the kernel. No imports from api/, backend/, or storage/.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from core.errors import ValidationError

# ---------------------------------------------------------------------------
# Token types
# ---------------------------------------------------------------------------

TOKEN_TYPE_DEFAULT = "default"
TOKEN_TYPES = ("default", "service", "batch", "default-service", "default-batch")
_BATCH_TYPES = ("batch", "default-batch")

TOKEN_FIELD_NAMES = (
    "token_bound_cidrs",
    "token_explicit_max_ttl",
    "token_max_ttl",
    "token_no_default_policy",
    "token_num_uses",
    "token_period",
    "token_policies",
    "token_type",
    "token_ttl",
)


@dataclass
class TokenParams:
    """Token settings applied to every token this auth method issues."""

    token_bound_cidrs: list[str] = field(default_factory=list)
    token_explicit_max_ttl: int = 0
    token_max_ttl: int = 0
    token_no_default_policy: bool = False
    token_num_uses: int = 0
    token_period: int = 0
    token_policies: list[str] = field(default_factory=list)
    token_type: str = TOKEN_TYPE_DEFAULT
    token_ttl: int = 0


@dataclass
class TokenFieldsRequest:
    """Token fields as supplied by a caller. None means the field was absent."""

    token_bound_cidrs: Optional[list[str]] = None
    token_explicit_max_ttl: Optional[int] = None
    token_max_ttl: Optional[int] = None
    token_no_default_policy: Optional[bool] = None
    token_num_uses: Optional[int] = None
    token_period: Optional[int] = None
    token_policies: Optional[list[str]] = None
    token_type: Optional[str] = None
    token_ttl: Optional[int] = None


# ---------------------------------------------------------------------------
# Schema declarations
# ---------------------------------------------------------------------------


def deprecation_text(param: str) -> str:
    """Description used for a deprecated field superseded by `param`."""
    return f'Use "{param}" instead. If this and "{param}" are both specified, only "{param}" will be used.'


def add_token_fields() -> dict[str, dict]:
    """Return schema declarations for every token_* field.

    Plain dicts so core.schema can wrap them in FieldSchema without a
    circular import.
    """
    return {
        "token_bound_cidrs": {
            "type": "comma_string_slice",
            "description": (
                "Comma separated string or JSON list of CIDR blocks. If set, specifies the blocks of "
                "IP addresses which are allowed to use the generated token."
            ),
            "display_name": "Generated Token's Bound CIDRs",
            "default": [],
        },
        "token_explicit_max_ttl": {
            "type": "duration_second",
            "description": (
                "If set, tokens created via this role carry an explicit maximum TTL. During renewal, "
                "the current maximum TTL values of the role and the mount are not checked for changes, "
                "and any updates to these values will have no effect on the token being renewed."
            ),
            "display_name": "Generated Token's Explicit Maximum TTL",
            "default": 0,
        },
        "token_max_ttl": {
            "type": "duration_second",
            "description": "The maximum lifetime of the generated token",
            "display_name": "Generated Token's Maximum TTL",
            "default": 0,
        },
        "token_no_default_policy": {
            "type": "bool",
            "description": "If true, the 'default' policy will not automatically be added to generated tokens",
            "display_name": "Do Not Attach 'default' Policy To Generated Tokens",
            "default": False,
        },
        "token_num_uses": {
            "type": "int",
            "description": "The maximum number of times a token may be used, a value of zero means unlimited",
            "display_name": "Maximum Uses of Generated Tokens",
            "default": 0,
        },
        "token_period": {
            "type": "duration_second",
            "description": (
                "If set, tokens created via this role will have no max lifetime; instead, their "
                "renewal period will be fixed to this value."
            ),
            "display_name": "Generated Token's Period",
            "default": 0,
        },
        "token_policies": {
            "type": "comma_string_slice",
            "description": "Comma-separated list of policies",
            "display_name": "Generated Token's Policies",
            "default": [],
        },
        "token_type": {
            "type": "string",
            "description": "The type of token to generate, service or batch",
            "display_name": "Generated Token's Type",
            "default": TOKEN_TYPE_DEFAULT,
        },
        "token_ttl": {
            "type": "duration_second",
            "description": "The initial ttl of the token to generate",
            "display_name": "Generated Token's Initial TTL",
            "default": 0,
        },
    }


# ---------------------------------------------------------------------------
# Value parsers
# ---------------------------------------------------------------------------

# Go-style duration strings: "90s", "30m", "1h30m". Days are not accepted.
_DURATION_RE = re.compile(r"^(?:\d+[hms])+$")
_INTEGER_RE = re.compile(r"^-?\d+$")
_DURATION_PART_RE = re.compile(r"(\d+)([hms])")
_UNIT_SECONDS = {"h": 3600, "m": 60, "s": 1}


def parse_duration(value: Union[int, float, str, None]) -> int:
    """Convert a duration to whole seconds.

    Accepts int seconds, integral floats, digit strings ("3600") and unit
    strings ("1h", "30m", "1h30m", "45s"). Empty string and None mean 0.
    Raises ValidationError for negative or malformed input.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValidationError(f"invalid duration {value!r}", code="invalid_duration")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"invalid duration {value!r}: must be whole seconds", code="invalid_duration")
        value = int(value)
    if isinstance(value, int):
        seconds = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if _INTEGER_RE.match(text):
            seconds = int(text)
        elif _DURATION_RE.match(text):
            seconds = sum(int(n) * _UNIT_SECONDS[unit] for n, unit in _DURATION_PART_RE.findall(text))
        else:
            raise ValidationError(f"invalid duration {value!r}", code="invalid_duration")
    else:
        raise ValidationError(f"invalid duration {value!r}", code="invalid_duration")

    if seconds < 0:
        raise ValidationError(f"invalid duration {value!r}: must not be negative", code="invalid_duration")
    return seconds


def split_comma_list(value: Union[str, list, tuple, None]) -> list[str]:
    """Accept "a, b" or ["a", "b"]; return stripped, non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(v) for v in value]
    return [item.strip() for item in items if item.strip()]


def parse_policies(value: Union[str, list, tuple, None]) -> list[str]:
    """Lowercase, de-duplicate and sort policy names."""
    return sorted({p.lower() for p in split_comma_list(value)})


def parse_bound_cidrs(value: Union[str, list, tuple, None]) -> list[str]:
    """Validate each entry as an IP network or address; return canonical strings."""
    result: list[str] = []
    for entry in split_comma_list(value):
        try:
            if "/" in entry:
                result.append(str(ipaddress.ip_network(entry, strict=False)))
            else:
                result.append(str(ipaddress.ip_address(entry)))
        except ValueError as exc:
            raise ValidationError(f"invalid value for 'token_bound_cidrs': {exc}", code="invalid_cidr") from exc
    return result


# ---------------------------------------------------------------------------
# Merge / validate / project
# ---------------------------------------------------------------------------


def parse_token_fields(request: TokenFieldsRequest, params: TokenParams) -> None:
    """Merge the token fields present in `request` into `params`, then validate.

    Absent fields (None) leave the stored value untouched. Validation runs on
    the merged result, so a request that only lowers token_max_ttl below a
    previously stored token_ttl is rejected too.

    Raises ValidationError on the first failed rule. `params` may be partially
    updated when that happens; callers discard it.
    """
    if request.token_bound_cidrs is not None:
        params.token_bound_cidrs = parse_bound_cidrs(request.token_bound_cidrs)
    if request.token_explicit_max_ttl is not None:
        params.token_explicit_max_ttl = parse_duration(request.token_explicit_max_ttl)
    if request.token_max_ttl is not None:
        params.token_max_ttl = parse_duration(request.token_max_ttl)
    if request.token_no_default_policy is not None:
        params.token_no_default_policy = bool(request.token_no_default_policy)
    if request.token_num_uses is not None:
        params.token_num_uses = int(request.token_num_uses)
    if request.token_period is not None:
        params.token_period = parse_duration(request.token_period)
    if request.token_policies is not None:
        params.token_policies = parse_policies(request.token_policies)
    if request.token_type is not None:
        token_type = request.token_type.strip().lower() or TOKEN_TYPE_DEFAULT
        if token_type not in TOKEN_TYPES:
            raise ValidationError(f"invalid 'token_type' value {request.token_type!r}", code="invalid_token_type")
        params.token_type = token_type
    if request.token_ttl is not None:
        params.token_ttl = parse_duration(request.token_ttl)

    check_ttl_bounds(params.token_ttl, params.token_max_ttl)
    if params.token_num_uses < 0:
        raise ValidationError("'token_num_uses' cannot be negative", code="invalid_token_num_uses")
    if params.token_type in _BATCH_TYPES:
        if params.token_period > 0:
            raise ValidationError(
                "'token_type' cannot be 'batch' or 'default_batch' when set to generate periodic tokens",
                code="invalid_token_type",
            )
        if params.token_num_uses > 0:
            raise ValidationError(
                "'token_type' cannot be 'batch' or 'default_batch' when set to generate tokens with limited use count",
                code="invalid_token_type",
            )


def check_ttl_bounds(token_ttl: int, token_max_ttl: int) -> None:
    """Raise ValidationError if token_ttl exceeds a non-zero token_max_ttl."""
    if token_max_ttl and token_ttl > token_max_ttl:
        raise ValidationError("'token_ttl' cannot be greater than 'token_max_ttl'", code="invalid_token_ttl")


def populate_token_data(params: TokenParams, data: dict) -> None:
    """Write every token field into `data`. Durations are integer seconds."""
    data["token_bound_cidrs"] = list(params.token_bound_cidrs)
    data["token_explicit_max_ttl"] = params.token_explicit_max_ttl
    data["token_max_ttl"] = params.token_max_ttl
    data["token_no_default_policy"] = params.token_no_default_policy
    data["token_num_uses"] = params.token_num_uses
    data["token_period"] = params.token_period
    data["token_policies"] = list(params.token_policies)
    data["token_type"] = params.token_type
    data["token_ttl"] = params.token_ttl


# ---------------------------------------------------------------------------
# Legacy field migration
# ---------------------------------------------------------------------------


def upgrade_value(
    legacy: Optional[int],
    current: Optional[int],
    stored_legacy: int,
    stored_current: int,
) -> tuple[int, int]:
    """Return the (legacy, current) pair to persist for one deprecated TTL field.

    `legacy` / `current` are the request values, None when the caller did not
    send that field. `stored_*` are the values on the entity before this call.

      legacy only   -> legacy is stored as sent; current keeps its stored value.
                       The read path falls back to legacy while current is 0.
      both sent     -> both stored as given. Current wins at read time.
      current only  -> legacy keeps its stored value.
      neither       -> nothing changes.

    The legacy field is never copied into the current one, so the record keeps
    the field the operator actually wrote.
    """
    new_legacy = stored_legacy if legacy is None else legacy
    new_current = stored_current if current is None else current
    return new_legacy, new_current
