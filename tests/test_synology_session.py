import pytest
import requests

from fakes import FakeSynologyNAS, mounted_session, query_params
from omnistore.infrastructure.exceptions import AuthError, TransferError
from omnistore.infrastructure.storage.object_storage.synology_session import (
    SessionState,
    SynologySessionManager,
)

ENDPOINT = "http://nas.test:5000"


@pytest.fixture
def nas():
    return FakeSynologyNAS()


@pytest.fixture
def manager(nas):
    session, _ = mounted_session(nas)
    return SynologySessionManager(ENDPOINT, "admin", "secret", http_session=session)


def test_login_activates_session_and_discovers_scope_apis(manager):
    session = manager.login()

    assert manager.state is SessionState.ACTIVE
    assert session.sid == "sid-1"
    assert session.syno_token == "token-1"
    assert "SYNO.FileStation.List" in session.api_info
    assert "SYNO.DownloadStation.Task" not in session.api_info


def test_login_sends_dsm_auth_parameters(nas):
    http, transport = mounted_session(nas)
    manager = SynologySessionManager(ENDPOINT, "admin", "secret", http_session=http, otp_code="123456")

    manager.login()

    params = query_params(transport.requests[0])
    assert params["api"] == "SYNO.API.Auth"
    assert params["version"] == "3"
    assert params["method"] == "login"
    assert params["session"] == "FileStation"
    assert params["format"] == "cookie"
    assert params["enable_syno_token"] == "yes"
    assert params["otp_code"] == "123456"


def test_ensure_active_logs_in_once_within_validity(manager, nas):
    first = manager.ensure_active()
    second = manager.ensure_active()

    assert first is second
    assert nas.login_calls == 1


def test_invalidate_forces_a_new_login(manager, nas):
    manager.ensure_active()
    manager.invalidate()

    assert manager.state is SessionState.EXPIRED
    session = manager.ensure_active()

    assert manager.state is SessionState.ACTIVE
    assert session.sid == "sid-2"
    assert nas.login_calls == 2


@pytest.mark.parametrize("code, reason", [
    (400, "invalid_credentials"),
    (403, "otp_required"),
    (407, "rate_limited"),
    (999, "backend_unavailable"),
])
def test_login_error_maps_to_auth_error(manager, nas, code, reason):
    nas.login_error = code

    with pytest.raises(AuthError) as exc_info:
        manager.login()

    assert exc_info.value.code == code
    assert exc_info.value.reason == reason
    assert not exc_info.value.retryable
    assert manager.state is SessionState.LOGGED_OUT
    assert manager.session is None


def test_transport_failure_is_retryable_transfer_error():
    def unreachable(request):
        raise requests.ConnectionError("connection refused")

    http, _ = mounted_session(unreachable)
    manager = SynologySessionManager(ENDPOINT, "admin", "secret", http_session=http)

    with pytest.raises(TransferError) as exc_info:
        manager.login()

    assert exc_info.value.retryable
    assert not isinstance(exc_info.value, AuthError)
    assert manager.state is SessionState.LOGGED_OUT


def test_sign_adds_session_credentials(manager):
    signed = manager.sign({"api": "SYNO.FileStation.List"}, {"Accept": "*/*"})

    assert signed.params == {"api": "SYNO.FileStation.List", "_sid": "sid-1", "SynoToken": "token-1"}
    assert signed.headers["Cookie"] == "stay_login=1; id=sid-1"
    assert signed.headers["X-SYNO-TOKEN"] == "token-1"
    assert signed.headers["Accept"] == "*/*"


def test_logout_resets_state(manager, nas):
    manager.login()

    manager.logout()

    assert manager.state is SessionState.LOGGED_OUT
    assert nas.logout_calls == 1
    assert not nas.valid_sids


def test_api_lookup_uses_discovered_info(manager):
    assert manager.api_path("SYNO.FileStation.List") == "entry.cgi"
    manager.login()

    assert manager.api_path("SYNO.FileStation.Unknown") == "entry.cgi"
    assert manager.api_version("SYNO.FileStation.Upload", 2) == 2
    assert manager.api_version("SYNO.FileStation.List", 5) == 2
    assert manager.api_version("SYNO.FileStation.Unknown", 4) == 4
