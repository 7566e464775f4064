from __future__ import annotations

from typing import Optional


class FreeboxError(Exception):
    """Base exception for everything raised by the Freebox client."""


class TransportError(FreeboxError):
    """Network or HTTP layer failure. Not retried."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class DecodeError(FreeboxError):
    """Response body is not a well-formed API envelope."""


class CredentialStoreError(FreeboxError):
    """The application token file cannot be read or written."""


class BootstrapError(FreeboxError):
    """The application token request did not end with a grant."""

    def __init__(self, message: str, track_id: Optional[int] = None):
        self.track_id = track_id
        super().__init__(message)


class BootstrapDenied(BootstrapError):
    pass


class BootstrapTimedOut(BootstrapError):
    pass


class ApiError(FreeboxError):
    """
    Failure reported by the router through the envelope's ``error_code``.

    The raw code, the URL and the router's ``msg`` are kept for diagnostics.
    """
    description = "the API returned an error"

    def __init__(self, error_code: str, url: Optional[str] = None, msg: Optional[str] = None):
        self.error_code = error_code
        self.url = url
        self.msg = msg
        description = ERROR_DESCRIPTIONS.get(error_code, self.description)
        message = f"{description} ({error_code or 'no error_code'})"
        if url:
            message = f"{url}: {message}"
        if msg:
            message = f"{message}: {msg}"
        super().__init__(message)


class AuthRequired(ApiError):
    """Session token expired. Consumed by the session gateway, never surfaced."""
    description = "session token is missing or expired"


class SessionRenewalError(ApiError):
    """``auth_required`` was reported again right after a fresh login."""
    description = "session still rejected after renewing the session token"


class CredentialRevoked(ApiError):
    description = "the app token is invalid or has been revoked"


class PermissionDenied(ApiError):
    description = "app permissions do not allow accessing this API"


class RemoteAccessDenied(ApiError):
    description = "app token requests are refused from a remote IP"


class InvalidRequest(ApiError):
    description = "the request is invalid"


class RateLimited(ApiError):
    description = "too many auth errors have been made from this IP"


class RegistrationDisabled(ApiError):
    description = "app registration or API access is disabled"


class ServerError(ApiError):
    description = "internal router error"


class InvalidTarget(ApiError):
    description = "invalid interface"


class UnknownApiError(ApiError):
    description = "the API returned an unknown error_code"


# codes sharing an exception class but worth a more precise message
ERROR_DESCRIPTIONS = {
    "new_apps_denied": "new application token requests have been disabled",
    "apps_denied": "API access from apps has been disabled",
    "db_error": "the requested database does not seem to exist",
}

API_ERRORS: dict[str, type[ApiError]] = {
    "auth_required": AuthRequired,
    "invalid_token": CredentialRevoked,
    "insufficient_rights": PermissionDenied,
    "denied_from_external_ip": RemoteAccessDenied,
    "invalid_request": InvalidRequest,
    "ratelimited": RateLimited,
    "new_apps_denied": RegistrationDisabled,
    "apps_denied": RegistrationDisabled,
    "internal_error": ServerError,
    "db_error": ServerError,
    "nodev": InvalidTarget,
}


def classify_error(error_code: Optional[str], url: Optional[str] = None, msg: Optional[str] = None) -> ApiError:
    """Build (not raise) the exception matching ``error_code``."""
    code = error_code or ""
    return API_ERRORS.get(code, UnknownApiError)(code, url=url, msg=msg)
