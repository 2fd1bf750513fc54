"""
api/dependencies.py -- FastAPI Depends() helpers for the config endpoints.

Two ways to present the operator token, checked in order:
  1. Authorization: Bearer <token> header.
  2. X-API-Key header.

The token is compared with hmac.compare_digest so response time does not
leak how many leading characters matched.

get_backend() hands route handlers the GitHubConfigBackend wired up in the
application lifespan (app.state.backend).
"""

from __future__ import annotations

import hmac

from fastapi import HTTPException, Request

from backend.handlers import GitHubConfigBackend
from core.config import get_settings


def _presented_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip()
    return request.headers.get("X-API-Key", "").strip()


def require_operator(request: Request) -> None:
    """Raise HTTP 401 unless the request carries the operator token.

    Use as a FastAPI dependency:
        @router.get("/protected", dependencies=[Depends(require_operator)])
    """
    presented = _presented_token(request)
    expected = get_settings().operator_token
    if not presented or not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Operator token required."},
        )


def get_backend(request: Request) -> GitHubConfigBackend:
    return request.app.state.backend
