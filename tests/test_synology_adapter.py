import pytest

from conformance import StorageContract
from fakes import FakeSynologyNAS, json_reply, mounted_session, query_params
from omnistore.infrastructure.exceptions import AuthError, QuotaError, TransferError
from omnistore.infrastructure.storage.object_storage import ProviderConfig
from omnistore.infrastructure.storage.object_storage.synology_adapter import SynologyAdapter
from omnistore.infrastructure.storage.object_storage.synology_session import SessionState

ENDPOINT = "http://nas.test:5000"


@pytest.fixture
def nas():
    return FakeSynologyNAS()


@pytest.fixture
def transport(nas):
    return mounted_session(nas)


@pytest.fixture
def synology(transport, temp_dir):
    http, _ = transport
    config = ProviderConfig(
        endpoint=ENDPOINT,
        access_id="admin",
        access_key="secret",
        shared_folder="/home",
        temp_dir=temp_dir,
    )
    return SynologyAdapter(config, http_session=http)


class TestSynologyContract(StorageContract):

    @pytest.fixture
    def storage(self, synology):
        return synology


def test_shared_folder_is_folded_into_stored_paths(synology, nas):
    obj = synology.put("docs/report.txt", b"quarterly")

    assert obj.path == "docs/report.txt"
    assert nas.files == {"/home/docs/report.txt": b"quarterly"}


def test_upload_sends_file_part_last(synology, nas):
    synology.put("docs/report.txt", b"quarterly")

    assert nas.upload_fields == [["path", "overwrite", "create_parents", "file"]]


def test_listing_strips_shared_folder_and_reports_metadata(synology, nas):
    nas.files["/home/docs/a.txt"] = b"aaa"
    nas.files["/home/docs/deep/b.txt"] = b"b"
    nas.files["/home/other.txt"] = b"o"

    objects = synology.list("docs")

    assert [(o.path, o.name, o.size) for o in objects] == [("docs/a.txt", "a.txt", 3), ("docs/deep/b.txt", "b.txt", 1)]
    assert objects[0].last_modified.timestamp() == FakeSynologyNAS.MTIME


def test_listing_skips_folders_outside_the_prefix(synology, nas):
    nas.files["/home/docs/a.txt"] = b"a"
    nas.files["/home/archive/old.txt"] = b"x"

    synology.list("docs")

    listed = [params["folder_path"] for params in nas.calls if params["api"] == "SYNO.FileStation.List"]
    assert listed == ["/home", "/home/docs"]


def test_listing_follows_offset_pages(synology, nas):
    for index in range(5):
        nas.files[f"/home/bulk/{index}.bin"] = b"x"
    synology.LIST_PAGE_SIZE = 2

    objects = synology.list("bulk")

    assert len(objects) == 5
    offsets = [params["offset"] for params in nas.calls if params.get("folder_path") == "/home/bulk"]
    assert offsets == ["0", "2", "4"]


def test_listing_missing_folder_is_empty(synology):
    assert synology.list("nothing/here") == []


def test_two_operations_share_one_login(synology, nas):
    synology.put("a.txt", b"a")
    synology.list()

    assert nas.login_calls == 1


def test_expired_session_is_renewed_once(synology, nas):
    synology.put("a.txt", b"a")
    nas.expire_sessions()

    synology.put("b.txt", b"b")

    assert nas.login_calls == 2
    assert synology.sessions.state is SessionState.ACTIVE
    assert "/home/b.txt" in nas.files


def test_session_error_after_relogin_is_not_retried_again(temp_dir):
    logins = []

    def always_expired(request):
        params = query_params(request)
        if params.get("api") == "SYNO.API.Auth":
            logins.append(1)
            return json_reply({"success": True, "data": {"sid": "s", "synotoken": "t"}})
        if params.get("api") == "SYNO.API.Info":
            return json_reply({"success": True, "data": {}})
        return json_reply({"success": False, "error": {"code": 106}})

    http, _ = mounted_session(always_expired)
    adapter = SynologyAdapter(ProviderConfig(endpoint=ENDPOINT, shared_folder="/home", temp_dir=temp_dir),
                              http_session=http)

    with pytest.raises(AuthError) as exc_info:
        adapter.delete("a.txt")

    assert exc_info.value.code == 106
    assert len(logins) == 2


@pytest.mark.parametrize("code, error_type", [
    (105, AuthError),
    (416, QuotaError),
    (1100, TransferError),
])
def test_envelope_errors_are_translated(temp_dir, code, error_type):
    def failing(request):
        params = query_params(request)
        if params.get("api") == "SYNO.API.Auth":
            return json_reply({"success": True, "data": {"sid": "s", "synotoken": "t"}})
        if params.get("api") == "SYNO.API.Info":
            return json_reply({"success": True, "data": {}})
        return json_reply({"success": False, "error": {"code": code}})

    http, _ = mounted_session(failing)
    adapter = SynologyAdapter(ProviderConfig(endpoint=ENDPOINT, shared_folder="/home", temp_dir=temp_dir),
                              http_session=http)

    with pytest.raises(error_type):
        adapter.put("a.txt", b"a")


def test_first_request_uses_versions_advertised_by_the_nas(synology, nas):
    nas.API_INFO = dict(FakeSynologyNAS.API_INFO)
    nas.API_INFO["SYNO.FileStation.List"] = {"path": "entry.cgi", "minVersion": 1, "maxVersion": 1}
    nas.API_INFO["SYNO.FileStation.Download"] = {"path": "entry.cgi", "minVersion": 1, "maxVersion": 1}

    synology.list()

    assert nas.calls[0]["api"] == "SYNO.FileStation.List"
    assert nas.calls[0]["version"] == "1"
    assert "version=1" in SynologyAdapter(synology.config, http_session=synology.http).get_url("a.txt")


def test_retry_after_relogin_uses_rediscovered_versions(synology, nas):
    synology.list()
    nas.expire_sessions()
    nas.API_INFO = dict(FakeSynologyNAS.API_INFO)
    nas.API_INFO["SYNO.FileStation.List"] = {"path": "entry.cgi", "minVersion": 1, "maxVersion": 1}

    synology.list()

    assert nas.login_calls == 2
    assert [call["version"] for call in nas.calls] == ["2", "2", "1"]


def test_login_failure_surfaces_auth_error(synology, nas):
    nas.login_error = 400

    with pytest.raises(AuthError) as exc_info:
        synology.list()

    assert exc_info.value.code == 400


def test_get_url_is_signed_download_url(synology):
    url = synology.get_url("docs/a.txt")

    assert url.startswith(f"{ENDPOINT}/webapi/entry.cgi?")
    assert "api=SYNO.FileStation.Download" in url
    assert "path=%2Fhome%2Fdocs%2Fa.txt" in url
    assert "_sid=sid-1" in url


def test_endpoint_and_close(synology, nas):
    synology.list()

    assert synology.get_endpoint() == ENDPOINT
    synology.close()

    assert nas.logout_calls == 1
    assert synology.sessions.state is SessionState.LOGGED_OUT
