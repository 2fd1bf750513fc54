"""
core/schema.py -- Declarative field schema for the config endpoint.

Each recognized input field is described once here: its type, whether it is
required or deprecated, and the human-readable description. The schema is the
single source for the API request model's field descriptions and for the
published field listing (GET /api/v1/auth/github/config/fields, CLI `fields`).

Deprecated fields (ttl, max_ttl) are still accepted. Nothing errors on their
use; the write handler migrates them (see core.tokenutil.upgrade_value).

Layer rule: core/ is the kernel. No imports from api/, backend/, or storage/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum

from core.tokenutil import add_token_fields, deprecation_text


class FieldType(str, Enum):
    string = "string"
    int64 = "int64"
    int = "int"
    bool = "bool"
    duration_second = "duration_second"
    comma_string_slice = "comma_string_slice"


@dataclass(frozen=True)
class FieldSchema:
    name: str
    type: FieldType
    description: str
    required: bool = False
    deprecated: bool = False
    display_name: str = ""
    display_group: str = ""
    default: object = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["type"] = self.type.value
        return d


_TOKEN_POLICIES_SUFFIX = (
    ". This will apply to all tokens generated by this auth method, in addition to any "
    "policies configured for specific users/groups."
)


def _build_config_fields() -> dict[str, FieldSchema]:
    fields: dict[str, FieldSchema] = {
        "organization": FieldSchema(
            name="organization",
            type=FieldType.string,
            description="The organization users must be part of",
            required=True,
        ),
        "organization_id": FieldSchema(
            name="organization_id",
            type=FieldType.int64,
            description="The ID of the organization users must be part of",
        ),
        "base_url": FieldSchema(
            name="base_url",
            type=FieldType.string,
            description=(
                "The API endpoint to use. Useful if you are running GitHub Enterprise "
                "or an API-compatible authentication server."
            ),
            display_name="Base URL",
            display_group="GitHub Options",
        ),
        "ttl": FieldSchema(
            name="ttl",
            type=FieldType.duration_second,
            description=deprecation_text("token_ttl"),
            deprecated=True,
        ),
        "max_ttl": FieldSchema(
            name="max_ttl",
            type=FieldType.duration_second,
            description=deprecation_text("token_max_ttl"),
            deprecated=True,
        ),
    }

    for name, spec in add_token_fields().items():
        fields[name] = FieldSchema(
            name=name,
            type=FieldType(spec["type"]),
            description=spec["description"],
            display_name=spec.get("display_name", ""),
            display_group="Tokens",
            default=spec.get("default"),
        )

    token_policies = fields["token_policies"]
    fields["token_policies"] = FieldSchema(
        name=token_policies.name,
        type=token_policies.type,
        description=token_policies.description + _TOKEN_POLICIES_SUFFIX,
        display_name=token_policies.display_name,
        display_group=token_policies.display_group,
        default=token_policies.default,
    )
    return fields


CONFIG_FIELDS: dict[str, FieldSchema] = _build_config_fields()


def describe(name: str) -> str:
    """Return the description for a config field. Raises KeyError if unknown."""
    return CONFIG_FIELDS[name].description


def required_fields() -> list[str]:
    return [f.name for f in CONFIG_FIELDS.values() if f.required]


def deprecated_fields() -> list[str]:
    return [f.name for f in CONFIG_FIELDS.values() if f.deprecated]
