"""
Self-instrumentation of the Freebox API client.

Metrics live on their own registry so the embedding exporter decides how to
expose them (``start_http_server(port, registry=registry)`` or merged into its
own collection).
"""

from prometheus_client import CollectorRegistry, Counter, Histogram

registry = CollectorRegistry()

api_requests_total = Counter(
    "freebox_api_requests_total",
    "Freebox API requests by outcome (ok, api_error, transport_error, decode_error)",
    ["method", "outcome"],
    registry=registry,
)

api_errors_total = Counter(
    "freebox_api_errors_total",
    "Error codes reported by the Freebox API",
    ["error_code"],
    registry=registry,
)

api_request_duration_seconds = Histogram(
    "freebox_api_request_duration_seconds",
    "Time spent waiting for Freebox API responses",
    ["method"],
    registry=registry,
)

session_logins_total = Counter(
    "freebox_session_logins_total",
    "Challenge logins by outcome (success, failure)",
    ["outcome"],
    registry=registry,
)

app_authorizations_total = Counter(
    "freebox_app_authorizations_total",
    "Application token requests by final grant status",
    ["status"],
    registry=registry,
)
