from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from azure.core.exceptions import ClientAuthenticationError, HttpResponseError, ResourceNotFoundError

from omnistore.infrastructure.exceptions import AuthError, ObjectNotFoundError, QuotaError, TransferError
from omnistore.infrastructure.storage.object_storage import ProviderConfig
from omnistore.infrastructure.storage.object_storage.azure_adapter import AzureBlobAdapter

MODIFIED = datetime(2024, 2, 3, tzinfo=timezone.utc)
BLOB_URL = "https://acct.blob.core.windows.net/container/docs/a.txt"


class FakePager:
    """One ``by_page`` result: yields a single segment and exposes the next marker"""

    def __init__(self, blobs, continuation_token):
        self._segments = iter([iter(blobs)])
        self.continuation_token = continuation_token

    def __iter__(self):
        return self

    def __next__(self):
        return next(self._segments)


@pytest.fixture
def container():
    container = MagicMock()
    container.url = "https://acct.blob.core.windows.net/container"
    container.get_blob_client.return_value.url = BLOB_URL
    return container


@pytest.fixture
def azure(container, temp_dir):
    config = ProviderConfig(
        access_id="acct",
        access_key="a2V5",
        bucket="container",
        temp_dir=temp_dir,
    )
    return AzureBlobAdapter(config, container_client=container)


def test_get_stream_reads_download_chunks(azure, container):
    container.download_blob.return_value.chunks.return_value = iter([b"ab", b"c"])

    stream = azure.get_stream("docs/a.txt")

    assert stream.read() == b"abc"
    container.download_blob.assert_called_once_with("docs/a.txt")


def test_put_uploads_with_content_settings(azure, container):
    blob_client = container.get_blob_client.return_value
    blob_client.upload_blob.return_value = {"last_modified": MODIFIED, "etag": "0x1"}

    obj = azure.put("docs\\a.txt", b"hello")

    container.get_blob_client.assert_called_with("docs/a.txt")
    args, kwargs = blob_client.upload_blob.call_args
    assert args == (b"hello",)
    assert kwargs["overwrite"] is True
    assert kwargs["length"] == 5
    assert kwargs["content_settings"].content_type == "text/plain"
    assert obj.last_modified == MODIFIED


def make_http_error(status):
    error = HttpResponseError(message="backend said no")
    error.status_code = status
    return error


@pytest.mark.parametrize("error, error_type", [
    (ResourceNotFoundError(message="The specified blob does not exist."), ObjectNotFoundError),
    (ClientAuthenticationError(message="bad key"), AuthError),
    (make_http_error(503), QuotaError),
    (make_http_error(500), TransferError),
])
def test_sdk_errors_are_translated(azure, container, error, error_type):
    container.delete_blob.side_effect = error

    with pytest.raises(error_type):
        azure.delete("docs/a.txt")


def test_list_walks_markers(azure, container):
    pages = {
        None: FakePager([SimpleNamespace(name="docs/a.txt", last_modified=MODIFIED, size=1)], "marker-2"),
        "marker-2": FakePager([SimpleNamespace(name="docs/b.txt", last_modified=MODIFIED, size=2)], None),
    }
    container.list_blobs.return_value.by_page.side_effect = lambda continuation_token=None: pages[continuation_token]

    objects = azure.list("docs")

    assert [(o.path, o.size) for o in objects] == [("docs/a.txt", 1), ("docs/b.txt", 2)]
    assert container.list_blobs.call_args.kwargs["name_starts_with"] == "docs"


def test_private_url_carries_read_sas(azure):
    url = azure.get_url("docs/a.txt")

    assert url.startswith(BLOB_URL + "?")
    assert "sp=r" in url
    assert "sig=" in url


def test_public_url_and_endpoint(container, temp_dir):
    adapter = AzureBlobAdapter(
        ProviderConfig(access_id="acct", access_key="a2V5", bucket="container", acl="public-read", temp_dir=temp_dir),
        container_client=container,
    )

    assert adapter.get_url("docs/a.txt") == BLOB_URL
    assert adapter.get_endpoint() == "https://acct.blob.core.windows.net/container"
    adapter.close()
    container.close.assert_called_once()
