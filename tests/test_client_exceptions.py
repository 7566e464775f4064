import pytest

from freebox_client_exceptions import *

KNOWN_CODES = {
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


@pytest.mark.parametrize("code,expected", sorted(KNOWN_CODES.items()))
def test_known_codes_map_to_one_exception(code, expected):
    error = classify_error(code, url="http://fbx/api/v4/system/")

    assert type(error) is expected
    assert error.error_code == code
    assert error.url == "http://fbx/api/v4/system/"
    assert code in str(error)


def test_mapping_covers_exactly_the_known_codes():
    assert API_ERRORS == KNOWN_CODES


def test_classification_is_deterministic():
    assert type(classify_error("ratelimited")) is type(classify_error("ratelimited"))
    assert classify_error("ratelimited") is not classify_error("ratelimited")


@pytest.mark.parametrize("code", ["something_new", "AUTH_REQUIRED", "", None])
def test_unknown_codes_degrade_to_unknown_api_error(code):
    error = classify_error(code, msg="Erreur inconnue")

    assert isinstance(error, UnknownApiError)
    assert error.error_code == (code or "")
    assert error.msg == "Erreur inconnue"
    assert "Erreur inconnue" in str(error)


def test_every_api_error_is_a_freebox_error():
    for cls in set(KNOWN_CODES.values()) | {UnknownApiError, SessionRenewalError}:
        assert issubclass(cls, ApiError)
        assert issubclass(cls, FreeboxError)


def test_shared_exception_keeps_code_specific_message():
    assert "new application token" in str(classify_error("new_apps_denied"))
    assert "API access from apps" in str(classify_error("apps_denied"))


def test_session_renewal_error_has_its_own_message():
    error = SessionRenewalError("auth_required", url="http://fbx/api/v4/lan/")

    assert "renewing" in str(error)
    assert not isinstance(error, AuthRequired)
