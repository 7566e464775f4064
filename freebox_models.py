from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from freebox_client_exceptions import DecodeError

SESSION_TOKEN_HEADER = "X-Fbx-App-Auth"


@dataclass(frozen=True)
class ApplicationIdentity:
    """Static descriptor sent with every authorization and login request."""
    app_id: str
    app_name: str
    app_version: str
    device_name: str

    def to_payload(self) -> dict[str, str]:
        return {
            "app_id": self.app_id,
            "app_name": self.app_name,
            "app_version": self.app_version,
            "device_name": self.device_name,
        }


DEFAULT_APP_IDENTITY = ApplicationIdentity(
    app_id="fr.freebox.exporter",
    app_name="prometheus-exporter",
    app_version="0.4",
    device_name="local",
)


@dataclass(frozen=True)
class ApplicationToken:
    app_token: str = field(repr=False)
    """
    Long-lived secret approved once on the router front panel.
    """
    track_id: Optional[int] = None
    """
    Identifier of the authorization request that issued the token.
    """


class GrantStatus(Enum):
    UNKNOWN = "unknown"
    PENDING = "pending"
    TIMEOUT = "timeout"
    GRANTED = "granted"
    DENIED = "denied"

    @classmethod
    def parse(cls, value) -> GrantStatus:
        if isinstance(value, str) and value in cls._value2member_map_:
            return cls(value)
        return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (GrantStatus.GRANTED, GrantStatus.DENIED, GrantStatus.TIMEOUT)


@dataclass
class GrantRequestState:
    track_id: int
    status: GrantStatus = GrantStatus.PENDING
    attempts: int = 0


class SessionPermissions:

    def __init__(self, permissions=None):
        self.permissions: dict[str, bool] = {
            str(k): bool(v) for k, v in (permissions or {}).items()
        }

    def __getitem__(self, key: str) -> bool:
        return self.permissions.get(key, False)

    def __contains__(self, key: str) -> bool:
        return key in self.permissions

    def __repr__(self) -> str:
        return f"SessionPermissions({self.granted})"

    def is_granted(self, name: str) -> bool:
        return self.permissions.get(name, False)

    @property
    def granted(self) -> list[str]:
        return sorted(k for k, v in self.permissions.items() if v)


@dataclass(frozen=True, eq=False)
class SessionToken:
    token: str = field(repr=False)
    permissions: SessionPermissions = field(default_factory=SessionPermissions)


@dataclass
class ApiEnvelope:
    """
    Uniform wrapper of every API response.

    ``success`` is false exactly when ``error_code`` is set.
    """
    success: bool
    result: Any = None
    error_code: Optional[str] = None
    msg: Optional[str] = None

    @classmethod
    def from_json(cls, data) -> ApiEnvelope:
        if not isinstance(data, dict):
            raise DecodeError(f"expected a JSON object, got {type(data).__name__}")
        success = data.get("success")
        if not isinstance(success, bool):
            raise DecodeError("envelope has no boolean 'success' field")
        error_code = data.get("error_code") or None
        if success and error_code:
            raise DecodeError(f"successful envelope carries error_code {error_code!r}")
        if not success and not error_code:
            raise DecodeError("failed envelope carries no error_code")
        return cls(
            success=success,
            result=data.get("result"),
            error_code=error_code,
            msg=data.get("msg")
        )


@dataclass(frozen=True)
class ApiRequest:
    method: str
    url: str
    header: str = SESSION_TOKEN_HEADER
    """
    Name of the header carrying the session token.
    """
    body: Any = None
