import io
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import Forbidden, NotFound, ServiceUnavailable, TooManyRequests

from omnistore.infrastructure.exceptions import AuthError, ObjectNotFoundError, QuotaError, TransferError
from omnistore.infrastructure.storage.object_storage import ProviderConfig
from omnistore.infrastructure.storage.object_storage.gcs_adapter import DEFAULT_ENDPOINT, GoogleCloudAdapter

MODIFIED = datetime(2024, 3, 4, tzinfo=timezone.utc)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def blob(client):
    return client.bucket.return_value.blob.return_value


def make_adapter(client, temp_dir, **overrides):
    config = ProviderConfig(bucket="gcs-bucket", temp_dir=temp_dir, **overrides)
    return GoogleCloudAdapter(config, client=client)


def test_get_checks_existence_before_opening(client, blob, temp_dir):
    blob.open.return_value = io.BytesIO(b"gcs data")

    with make_adapter(client, temp_dir).get("gs-style/a.bin") as local:
        assert local.read() == b"gcs data"

    blob.reload.assert_called_once_with()
    blob.open.assert_called_once_with("rb")


def test_missing_object_is_not_found(client, blob, temp_dir):
    blob.reload.side_effect = NotFound("no such object")

    with pytest.raises(ObjectNotFoundError):
        make_adapter(client, temp_dir).get_stream("missing.bin")
    blob.open.assert_not_called()


def test_put_honours_storage_class(client, blob, temp_dir):
    blob.updated = MODIFIED

    obj = make_adapter(client, temp_dir, options={"storage_class": "NEARLINE"}).put("a.json", b"{}")

    blob.upload_from_string.assert_called_once_with(b"{}", content_type="application/json")
    assert blob.storage_class == "NEARLINE"
    assert (obj.path, obj.size, obj.last_modified) == ("a.json", 2, MODIFIED)


@pytest.mark.parametrize("error, error_type", [
    (Forbidden("denied"), AuthError),
    (TooManyRequests("slow down"), QuotaError),
    (ServiceUnavailable("try later"), TransferError),
])
def test_api_errors_are_translated(client, blob, temp_dir, error, error_type):
    blob.delete.side_effect = error

    with pytest.raises(error_type):
        make_adapter(client, temp_dir).delete("a.txt")


def test_list_follows_page_tokens(client, temp_dir):
    first = SimpleNamespace(
        pages=iter([[SimpleNamespace(name="logs/1.txt", updated=MODIFIED, size=1)]]),
        next_page_token="token-2",
    )
    second = SimpleNamespace(
        pages=iter([[SimpleNamespace(name="logs/2.txt", updated=MODIFIED, size=2)]]),
        next_page_token=None,
    )
    client.list_blobs.side_effect = [first, second]

    objects = make_adapter(client, temp_dir).list("logs")

    assert [o.path for o in objects] == ["logs/1.txt", "logs/2.txt"]
    tokens = [c.kwargs["page_token"] for c in client.list_blobs.call_args_list]
    assert tokens == [None, "token-2"]


def test_private_url_is_v4_signed(client, blob, temp_dir):
    blob.generate_signed_url.return_value = "https://storage.googleapis.com/gcs-bucket/a.txt?X-Goog-Signature=1"

    url = make_adapter(client, temp_dir, url_expires=120).get_url("a.txt")

    assert url.endswith("X-Goog-Signature=1")
    blob.generate_signed_url.assert_called_once_with(
        version="v4", expiration=timedelta(seconds=120), method="GET",
    )


def test_public_url_and_endpoint(client, blob, temp_dir):
    blob.public_url = "https://storage.googleapis.com/gcs-bucket/a.txt"
    adapter = make_adapter(client, temp_dir, acl="public-read")

    assert adapter.get_url("a.txt") == blob.public_url
    assert adapter.get_endpoint() == DEFAULT_ENDPOINT
