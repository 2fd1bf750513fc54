"""
core/errors.py -- Exception taxonomy for the configuration lifecycle.

Three kinds of failure, all single-attempt and fail-fast:

  ValidationError  -- caller supplied bad input. Recoverable by resubmitting.
                      The HTTP layer maps it to 400.
  ResolutionError  -- the GitHub organization lookup failed or returned an
                      unusable ID. Maps to 500 with an operator-facing message.
  StorageError     -- a get/put against the key-value store failed. Maps to
                      500 with a generic message.

Every error carries a machine-readable `code` so the API layer can build the
uniform ErrorResponse envelope without inspecting message text.

Layer rule: core/ is the kernel. No imports from api/, backend/, or storage/.
"""

from __future__ import annotations


class OrgAuthError(Exception):
    """Base class for every error raised by the configuration core."""

    code = "orgauth_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(OrgAuthError):
    """Client-caused: missing organization, bad base_url, bad token fields."""

    code = "validation_error"


class ResolutionError(OrgAuthError):
    """Dependency-caused: GitHub lookup errored or returned ID 0."""

    code = "resolution_failed"


class StorageError(OrgAuthError):
    """Dependency-caused: the storage collaborator failed a get or put."""

    code = "storage_error"
