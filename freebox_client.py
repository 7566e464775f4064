from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, TypeVar

import requests

from freebox_api import DEFAULT_TIMEOUT, FreeboxApi
from freebox_auth import LOGOUT_PATH, AppTokenAuthorizer, ChallengeLogin
from freebox_client_exceptions import *
from freebox_models import *
from freebox_token_store import TokenStore
from freebox_utils import api_base_url

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://mafreebox.freebox.fr/"

T = TypeVar("T")


class FreeboxSession:
    """
    Single entry point for authenticated API calls.

    Holds the session token in memory, logs in on first use (requesting an
    app token first when none is stored) and renews the session once when
    the router answers ``auth_required``. Login and renewal are serialized;
    API calls run concurrently.
    """

    def __init__(self, api: FreeboxApi, identity: ApplicationIdentity, store: TokenStore,
                 authorizer: Optional[AppTokenAuthorizer] = None,
                 challenge_login: Optional[ChallengeLogin] = None):
        self.api = api
        self.identity = identity
        self.store = store
        self.authorizer = authorizer or AppTokenAuthorizer(api, identity, store)
        self.challenge_login = challenge_login or ChallengeLogin(api, identity)
        self._lock = threading.Lock()
        self._session_token: Optional[SessionToken] = None

    @property
    def is_authenticated(self) -> bool:
        return self._session_token is not None

    @property
    def permissions(self) -> Optional[SessionPermissions]:
        token = self._session_token
        return token.permissions if token else None

    def _app_token(self) -> ApplicationToken:
        app_token = self.store.load()
        if app_token is None:
            logger.info("No app token stored, requesting a new one")
            app_token = self.authorizer.authorize()
        return app_token

    def _login(self) -> SessionToken:
        # caller holds self._lock
        try:
            token = self.challenge_login.login(self._app_token())
        except CredentialRevoked:
            logger.error(f"App token in {self.store.location} was revoked, the application must be registered again")
            raise
        except AuthRequired as e:
            # login endpoints themselves refused the request
            raise SessionRenewalError(e.error_code, url=e.url, msg=e.msg) from e
        self._session_token = token
        return token

    def _ensure_session(self) -> SessionToken:
        with self._lock:
            if self._session_token is not None:
                return self._session_token
            return self._login()

    def _renew(self, stale: SessionToken) -> SessionToken:
        with self._lock:
            current = self._session_token
            if current is not None and current is not stale:
                logger.debug("Session token already renewed by another caller")
                return current
            self._session_token = None
            return self._login()

    def _send(self, request: ApiRequest, token: SessionToken) -> ApiEnvelope:
        return self.api.call(request.method, request.url,
                             headers={request.header: token.token},
                             body=request.body)

    @staticmethod
    def _decode(envelope: ApiEnvelope, decoder: Optional[Callable[[Any], T]], url: str):
        if decoder is None:
            return envelope.result
        try:
            return decoder(envelope.result)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"{url}: cannot decode result: {e!r}") from e

    def call(self, request: ApiRequest, decoder: Optional[Callable[[Any], T]] = None):
        """
        Perform an authenticated call and return the decoded ``result``.

        An expired session is renewed and the request retried exactly once;
        every other failure is raised as a :class:`FreeboxError`.
        """
        token = self._ensure_session()
        try:
            envelope = self._send(request, token)
        except AuthRequired:
            logger.info(f"Session expired on {request.method} {request.url}, logging in again")
            token = self._renew(token)
            try:
                envelope = self._send(request, token)
            except AuthRequired as e:
                raise SessionRenewalError(e.error_code, url=request.url, msg=e.msg) from e
        return self._decode(envelope, decoder, request.url)

    def get(self, path: str, decoder: Optional[Callable[[Any], T]] = None):
        return self.call(ApiRequest("GET", self.api.url(path)), decoder)

    def post(self, path: str, body: Any = None, decoder: Optional[Callable[[Any], T]] = None):
        return self.call(ApiRequest("POST", self.api.url(path), body=body), decoder)

    def invalidate(self) -> None:
        with self._lock:
            self._session_token = None

    def logout(self) -> None:
        with self._lock:
            token, self._session_token = self._session_token, None
        if token is None:
            return
        try:
            self.api.call("POST", self.api.url(LOGOUT_PATH), headers={SESSION_TOKEN_HEADER: token.token})
        except AuthRequired:
            logger.debug("Session was already closed by the router")
        logger.info("Logged out")


class FreeboxSessionFactory:

    def __init__(self, endpoint: str = DEFAULT_ENDPOINT):
        self.base_url = api_base_url(endpoint)

    def create(self, identity: ApplicationIdentity = DEFAULT_APP_IDENTITY,
               store: Optional[TokenStore] = None,
               http: Optional[requests.Session] = None,
               timeout: float = DEFAULT_TIMEOUT,
               **authorizer_options) -> FreeboxSession:
        api = FreeboxApi(self.base_url, http or requests.Session(), timeout)
        store = store or TokenStore.default()
        authorizer = AppTokenAuthorizer(api, identity, store, **authorizer_options)
        return FreeboxSession(api, identity, store, authorizer=authorizer)
