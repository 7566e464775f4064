import json
import threading

import pytest
import requests

from freebox_api import FreeboxApi
from freebox_auth import AppTokenAuthorizer, ChallengeLogin, sign_challenge
from freebox_client import FreeboxSession
from freebox_models import DEFAULT_APP_IDENTITY, SESSION_TOKEN_HEADER
from freebox_token_store import TokenStore

BASE_URL = "http://mafreebox.test/api/v4/"


def make_response(status, body):
    response = requests.Response()
    response.status_code = status
    response.reason = {200: "OK", 403: "Forbidden", 404: "Not Found", 500: "Internal Server Error"}.get(status, "")
    response._content = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    response.encoding = "utf-8"
    response.headers["Content-Type"] = "application/json"
    return response


def ok(result=None):
    return 200, {"success": True, "result": result}


def error(error_code, status=403, msg=None):
    body = {"success": False, "error_code": error_code}
    if msg:
        body["msg"] = msg
    return status, body


class FakeFreebox:
    """
    In-process stand-in for the router, plugged where a ``requests.Session`` goes.

    ``routes`` maps ``(method, path)`` to a callable ``(headers, body) ->
    (status, body)`` and overrides the built-in login endpoints. Any other
    path requires a valid session and then answers 404.
    """

    def __init__(self, app_token="T1", track_id=7, grant_statuses=("granted",)):
        self.app_token = app_token
        self.track_id = track_id
        self.grant_statuses = list(grant_statuses)
        self.routes = {}
        self.calls = []
        self.challenges = 0
        self.current_challenge = None
        self.issued = []
        self.valid_sessions = set()
        self.session_error = None
        self._lock = threading.Lock()

    def request(self, method, url, headers=None, json=None, timeout=None):
        assert url.startswith(BASE_URL), url
        assert timeout is not None
        path = url[len(BASE_URL):]
        headers = dict(headers or {})
        with self._lock:
            self.calls.append((method, path, headers, json))
            status, body = self.dispatch(method, path, headers, json)
        return make_response(status, body)

    def calls_to(self, method, path):
        return [c for c in self.calls if c[0] == method and c[1] == path]

    @property
    def logins(self):
        return len(self.calls_to("POST", "login/session/"))

    def expire_sessions(self):
        with self._lock:
            self.valid_sessions.clear()

    def authenticated(self, headers):
        return headers.get(SESSION_TOKEN_HEADER) in self.valid_sessions

    def dispatch(self, method, path, headers, body):
        route = self.routes.get((method, path))
        if route is not None:
            return route(headers, body)

        if (method, path) == ("POST", "login/authorize/"):
            return ok({"app_token": self.app_token, "track_id": self.track_id})

        if method == "GET" and path == f"login/authorize/{self.track_id}":
            status = self.grant_statuses.pop(0) if len(self.grant_statuses) > 1 else self.grant_statuses[0]
            return ok({"status": status, "challenge": "unused"})

        if (method, path) == ("GET", "login/"):
            self.challenges += 1
            self.current_challenge = f"challenge-{self.challenges}"
            return ok({"logged_in": self.authenticated(headers), "challenge": self.current_challenge})

        if (method, path) == ("POST", "login/session/"):
            challenge, self.current_challenge = self.current_challenge, None
            if self.session_error:
                return error(self.session_error)
            if challenge is None or body["password"] != sign_challenge(self.app_token, challenge):
                return error("invalid_token")
            token = f"S{len(self.issued) + 1}"
            self.issued.append(token)
            self.valid_sessions.add(token)
            return ok({"session_token": token, "challenge": "next",
                       "permissions": {"settings": True, "explorer": False}})

        if (method, path) == ("POST", "login/logout/"):
            self.valid_sessions.discard(headers.get(SESSION_TOKEN_HEADER))
            return ok()

        if not self.authenticated(headers):
            return error("auth_required")
        return 404, b"Not Found"


@pytest.fixture
def fake_freebox():
    return FakeFreebox()


@pytest.fixture
def api(fake_freebox):
    return FreeboxApi(BASE_URL, fake_freebox, timeout=5)


@pytest.fixture
def token_store(tmp_path):
    return TokenStore(tmp_path / "freebox_token")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def authorizer(api, token_store, sleeps):
    return AppTokenAuthorizer(api, DEFAULT_APP_IDENTITY, token_store,
                              poll_interval=1.5, max_attempts=5, sleep=sleeps.append)


@pytest.fixture
def challenge_login(api):
    return ChallengeLogin(api, DEFAULT_APP_IDENTITY)


@pytest.fixture
def session(api, token_store, authorizer, challenge_login):
    return FreeboxSession(api, DEFAULT_APP_IDENTITY, token_store,
                          authorizer=authorizer, challenge_login=challenge_login)
