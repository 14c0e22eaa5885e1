"""
Error taxonomy shared by the API handlers.

Every error carries the HTTP status it maps to and renders itself as the
``{"success": false, ...}`` envelope the frontend expects.
"""

from __future__ import annotations

from typing import Optional


class CreateKitError(Exception):
    status_code = 500
    envelope_key = "error"

    def __init__(self, message: str, *, envelope_key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        # Set when the raiser picked the key; otherwise the route decides.
        self.explicit_envelope_key = envelope_key
        if envelope_key:
            self.envelope_key = envelope_key

    def to_payload(self, envelope_key: Optional[str] = None) -> dict:
        return {"success": False, envelope_key or self.envelope_key: self.message}


class BadRequest(CreateKitError):
    status_code = 400


class Unauthorized(CreateKitError):
    status_code = 401
    envelope_key = "message"


class Forbidden(CreateKitError):
    status_code = 403


class NotFound(CreateKitError):
    status_code = 404


class ProviderError(CreateKitError):
    """The upstream provider answered but reported a failure."""

    status_code = 500


class ProviderUnavailable(CreateKitError):
    """The upstream provider could not be reached or gave an unusable answer."""

    status_code = 500


class ProviderTimeout(CreateKitError):
    status_code = 504


class StorageError(CreateKitError):
    status_code = 500
