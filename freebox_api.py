from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from freebox_client_exceptions import *
from freebox_metrics import api_errors_total, api_request_duration_seconds, api_requests_total
from freebox_models import ApiEnvelope
from freebox_utils import join_url

logger = logging.getLogger(__name__)

FREEBOX_CLIENT_DEFAULT_HEADERS = {
    "User-Agent": "freebox-prometheus-exporter/0.4",
    "Accept": "application/json",
}

DEFAULT_TIMEOUT = 10


@dataclass
class FreeboxApi:
    """JSON-over-HTTP transport to the router, one envelope per call."""
    base_url: str
    http: requests.Session = field(default_factory=requests.Session)
    timeout: float = DEFAULT_TIMEOUT

    def url(self, path: str) -> str:
        return join_url(self.base_url, path)

    @staticmethod
    def __handle_response(response: requests.Response, method: str, url: str) -> ApiEnvelope:
        try:
            data = response.json()
        except ValueError as e:
            logger.debug(f"{method} {url} returned a non JSON body: {response.text[:200]!r}")
            raise DecodeError(f"{method} {url}: malformed JSON response ({response.status_code})") from e
        try:
            return ApiEnvelope.from_json(data)
        except DecodeError as e:
            raise DecodeError(f"{method} {url}: {e}") from e

    def request(self, method: str, url: str,
                headers: Optional[dict[str, str]] = None,
                body: Any = None) -> ApiEnvelope:
        """
        Send one request and parse the envelope, whatever its ``success``.

        Raises:
            TransportError: connection failure, timeout or HTTP 404
            DecodeError: body is not a valid envelope
        """
        try:
            with api_request_duration_seconds.labels(method=method).time():
                response = self.http.request(method, url,
                                             headers={**FREEBOX_CLIENT_DEFAULT_HEADERS, **(headers or {})},
                                             json=body,
                                             timeout=self.timeout)
        except requests.RequestException as e:
            api_requests_total.labels(method=method, outcome="transport_error").inc()
            raise TransportError(f"{method} {url}: {e}") from e

        if response.status_code == 404:
            api_requests_total.labels(method=method, outcome="transport_error").inc()
            raise TransportError(f"{method} {url}: {response.status_code} {response.reason}",
                                 status_code=response.status_code)

        try:
            envelope = self.__handle_response(response, method, url)
        except DecodeError:
            api_requests_total.labels(method=method, outcome="decode_error").inc()
            raise

        if envelope.success:
            api_requests_total.labels(method=method, outcome="ok").inc()
        else:
            api_requests_total.labels(method=method, outcome="api_error").inc()
            api_errors_total.labels(error_code=envelope.error_code).inc()
        return envelope

    def call(self, method: str, url: str,
             headers: Optional[dict[str, str]] = None,
             body: Any = None,
             expect_object: bool = False) -> ApiEnvelope:
        """
        Like :meth:`request`, but raises the classified error of a failed envelope.

        With ``expect_object`` a successful ``result`` that is not a JSON
        object is a :class:`DecodeError`.
        """
        envelope = self.request(method, url, headers=headers, body=body)
        if not envelope.success:
            raise classify_error(envelope.error_code, url=url, msg=envelope.msg)
        if expect_object and not isinstance(envelope.result, dict):
            raise DecodeError(f"{url}: result is not an object ({type(envelope.result).__name__})")
        return envelope
