from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Callable

from freebox_api import FreeboxApi
from freebox_client_exceptions import *
from freebox_metrics import app_authorizations_total, session_logins_total
from freebox_models import *
from freebox_token_store import TokenStore
from freebox_utils import safe_int

logger = logging.getLogger(__name__)

LOGIN_PATH = "login/"
AUTHORIZE_PATH = "login/authorize/"
SESSION_PATH = "login/session/"
LOGOUT_PATH = "login/logout/"

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_ATTEMPTS = 120


def sign_challenge(app_token: str, challenge: str) -> str:
    """HMAC-SHA1 of the challenge keyed with the app token, hex encoded."""
    return hmac.new(app_token.encode("utf-8"), challenge.encode("utf-8"), hashlib.sha1).hexdigest()


@dataclass
class AppTokenAuthorizer:
    """
    Requests a new application token and waits for a human to approve it on
    the router front panel.

    Blocks the caller for up to ``poll_interval * max_attempts`` seconds.
    Only a granted token is written to the store.
    """
    api: FreeboxApi
    identity: ApplicationIdentity
    store: TokenStore
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    sleep: Callable[[float], None] = time.sleep

    def request_token(self) -> tuple[ApplicationToken, GrantRequestState]:
        url = self.api.url(AUTHORIZE_PATH)
        envelope = self.api.call("POST", url, body=self.identity.to_payload(), expect_object=True)
        result = envelope.result
        app_token = result.get("app_token")
        track_id = safe_int(result.get("track_id"))
        if not isinstance(app_token, str) or not app_token or track_id is None:
            raise DecodeError(f"{url}: authorization response lacks app_token or track_id")
        logger.info(f"App token requested for {self.identity.app_id} (track_id={track_id})")
        return ApplicationToken(app_token=app_token, track_id=track_id), GrantRequestState(track_id=track_id)

    def track(self, state: GrantRequestState) -> GrantStatus:
        envelope = self.api.call("GET", self.api.url(f"{AUTHORIZE_PATH}{state.track_id}"), expect_object=True)
        raw_status = envelope.result.get("status")
        status = GrantStatus.parse(raw_status)
        if status == GrantStatus.UNKNOWN:
            logger.warning(f"Unexpected authorization status {raw_status!r} for track_id={state.track_id}")
        return status

    def authorize(self) -> ApplicationToken:
        token, state = self.request_token()
        logger.warning("Please approve the application on the Freebox front panel")

        while state.attempts < self.max_attempts:
            if state.attempts:
                self.sleep(self.poll_interval)
            state.status = self.track(state)
            state.attempts += 1
            logger.debug(f"Authorization track_id={state.track_id} attempt {state.attempts}: {state.status.value}")

            if state.status == GrantStatus.GRANTED:
                app_authorizations_total.labels(status=state.status.value).inc()
                self.store.save(token)
                logger.info(f"Application {self.identity.app_id} granted")
                return token
            if state.status == GrantStatus.DENIED:
                app_authorizations_total.labels(status=state.status.value).inc()
                raise BootstrapDenied("Application was denied on the Freebox front panel",
                                      track_id=state.track_id)
            if state.status == GrantStatus.TIMEOUT:
                app_authorizations_total.labels(status=state.status.value).inc()
                raise BootstrapTimedOut("Nobody approved the application in time", track_id=state.track_id)

        app_authorizations_total.labels(status="exhausted").inc()
        raise BootstrapTimedOut(f"Authorization still {state.status.value} after {state.attempts} attempts",
                                track_id=state.track_id)


@dataclass
class ChallengeLogin:
    """Turns an application token into a session token."""
    api: FreeboxApi
    identity: ApplicationIdentity

    def fetch_challenge(self) -> str:
        url = self.api.url(LOGIN_PATH)
        envelope = self.api.call("GET", url, expect_object=True)
        challenge = envelope.result.get("challenge")
        if not isinstance(challenge, str) or not challenge:
            raise DecodeError(f"{url}: login response lacks a challenge")
        return challenge

    def login(self, app_token: ApplicationToken) -> SessionToken:
        """
        Raises:
            CredentialRevoked: the app token must be requested again
        """
        url = self.api.url(SESSION_PATH)
        try:
            password = sign_challenge(app_token.app_token, self.fetch_challenge())
            envelope = self.api.call("POST", url, body={
                "app_id": self.identity.app_id,
                "password": password,
            }, expect_object=True)
        except FreeboxError:
            session_logins_total.labels(outcome="failure").inc()
            raise

        result = envelope.result
        session_token = result.get("session_token")
        permissions = result.get("permissions") or {}
        if not isinstance(session_token, str) or not session_token:
            session_logins_total.labels(outcome="failure").inc()
            raise DecodeError(f"{url}: login response lacks a session_token")
        if not isinstance(permissions, dict):
            session_logins_total.labels(outcome="failure").inc()
            raise DecodeError(f"{url}: login permissions are not an object")

        session_logins_total.labels(outcome="success").inc()
        permissions = SessionPermissions(permissions)
        logger.info(f"Logged in as {self.identity.app_id}, permissions: {', '.join(permissions.granted) or 'none'}")
        return SessionToken(token=session_token, permissions=permissions)
