"""
api/routes/v1/config.py -- GitHub auth method configuration endpoints.

Routes:
  GET  /api/v1/auth/github/config         -- effective config; 204 when unset
  POST /api/v1/auth/github/config         -- partial update; 204, or 200 with warnings
  GET  /api/v1/auth/github/config/fields  -- field schema (types, descriptions, deprecations)

Auth policy: every route requires the operator token (require_operator).

Error mapping is done by the exception handlers in api/main.py:
  ValidationError -> 400, ResolutionError -> 500 (operator message),
  StorageError -> 500 (generic message). Nothing is persisted on any error.

Rate limit: POST is throttled per client address (CONFIG_WRITE_RATE_LIMIT)
because a write without organization_id makes an outbound GitHub call with
the server's credential.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.dependencies import get_backend, require_operator
from api.limiter import config_write_limit, limiter
from api.models import ConfigResponse, ConfigWriteRequest, FieldInfo
from backend.handlers import GitHubConfigBackend
from core.schema import CONFIG_FIELDS

router = APIRouter(dependencies=[Depends(require_operator)])


@router.get(
    "/auth/github/config",
    response_model=ConfigResponse,
    responses={204: {"description": "The auth method has not been configured yet."}},
)
def read_config(backend: GitHubConfigBackend = Depends(get_backend)) -> Response | ConfigResponse:
    """Return the stored config with effective TTL values.

    204 (not 404) when nothing is stored: "not configured" is a normal state,
    distinct from a storage failure, which surfaces as 500.
    """
    resp = backend.read_config()
    if resp is None:
        return Response(status_code=204)
    return ConfigResponse(data=resp.data, warnings=resp.warnings)


@limiter.limit(config_write_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post(
    "/auth/github/config",
    response_model=ConfigResponse,
    responses={204: {"description": "Saved with no warnings."}},
)
async def write_config(
    request: Request,
    body: ConfigWriteRequest,
    backend: GitHubConfigBackend = Depends(get_backend),
) -> Response | ConfigResponse:
    """Merge the supplied fields into the stored config.

    Fields left out of the body keep their stored values. When no
    organization_id is known, it is resolved from GitHub before saving; if
    that lookup fails nothing is saved and the operator must set
    organization_id explicitly.
    """
    resp = await backend.write_config(body.to_request())
    if resp is None:
        return Response(status_code=204)
    return ConfigResponse(data=resp.data, warnings=resp.warnings)


@router.get("/auth/github/config/fields", response_model=list[FieldInfo])
def list_fields() -> list[FieldInfo]:
    """Describe every accepted config field, including deprecated ones."""
    return [FieldInfo(**f.to_dict()) for f in CONFIG_FIELDS.values()]
