import io
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from minio.error import S3Error
from urllib3.exceptions import ProtocolError

from omnistore.infrastructure.exceptions import AuthError, ObjectNotFoundError, QuotaError, TransferError
from omnistore.infrastructure.storage.object_storage import ProviderConfig
from omnistore.infrastructure.storage.object_storage.minio_adapter import MinIOAdapter

MODIFIED = datetime(2024, 1, 1, tzinfo=timezone.utc)


class StubS3Error(S3Error):
    """S3Error carrying only a code, independent of the SDK constructor signature"""

    def __init__(self, code):
        Exception.__init__(self, code)
        self._stub_code = code

    @property
    def code(self):
        return self._stub_code

    def __str__(self):
        return f"S3 operation failed; code: {self._stub_code}"


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def minio(client, temp_dir):
    config = ProviderConfig(
        endpoint="minio.local:9000",
        access_id="minioadmin",
        access_key="minioadmin",
        bucket="files",
        secure=False,
        temp_dir=temp_dir,
    )
    return MinIOAdapter(config, client=client)


def test_put_uploads_with_length_and_type(minio, client):
    client.put_object.return_value = SimpleNamespace(last_modified=MODIFIED)

    obj = minio.put("reports\\q1.pdf", io.BytesIO(b"%PDF-1.4"))

    kwargs = client.put_object.call_args.kwargs
    assert kwargs["bucket_name"] == "files"
    assert kwargs["object_name"] == "reports/q1.pdf"
    assert kwargs["length"] == 8
    assert kwargs["content_type"] == "application/pdf"
    assert kwargs["data"].read() == b"%PDF-1.4"
    assert (obj.path, obj.size, obj.last_modified) == ("reports/q1.pdf", 8, MODIFIED)


def test_get_materializes_and_releases_connection(minio, client):
    response = MagicMock()
    response.read.side_effect = [b"payload", b""]
    client.get_object.return_value = response

    with minio.get("http://minio.local:9000/a.txt") as local:
        assert local.read() == b"payload"

    client.get_object.assert_called_once_with(bucket_name="files", object_name="a.txt")
    response.close.assert_called_once()
    response.release_conn.assert_called_once()


@pytest.mark.parametrize("code, error_type", [
    ("NoSuchKey", ObjectNotFoundError),
    ("AccessDenied", AuthError),
    ("XMinioStorageFull", QuotaError),
    ("InternalError", TransferError),
])
def test_s3_errors_are_translated(minio, client, code, error_type):
    client.get_object.side_effect = StubS3Error(code)

    with pytest.raises(error_type) as exc_info:
        minio.get_stream("a.txt")

    assert exc_info.value.path == "a.txt"


def test_network_errors_are_retryable(minio, client):
    client.remove_object.side_effect = ProtocolError("connection aborted")

    with pytest.raises(TransferError) as exc_info:
        minio.delete("a.txt")

    assert exc_info.value.retryable


def test_list_is_recursive_and_skips_directories(minio, client):
    client.list_objects.return_value = [
        SimpleNamespace(object_name="docs/", is_dir=True, last_modified=None, size=None),
        SimpleNamespace(object_name="docs/a.txt", is_dir=False, last_modified=MODIFIED, size=3),
    ]

    objects = minio.list("/docs/")

    client.list_objects.assert_called_once_with(bucket_name="files", prefix="docs", recursive=True)
    assert [(o.path, o.size) for o in objects] == [("docs/a.txt", 3)]


def test_private_url_is_presigned(minio, client):
    client.presigned_get_object.return_value = "http://minio.local:9000/files/a.txt?X-Amz-Signature=abc"

    url = minio.get_url("a.txt")

    assert url.endswith("X-Amz-Signature=abc")
    client.presigned_get_object.assert_called_once_with(
        bucket_name="files", object_name="a.txt", expires=timedelta(seconds=3600),
    )


def test_public_url_and_endpoint(client, temp_dir):
    adapter = MinIOAdapter(
        ProviderConfig(endpoint="https://oss.example.com/", bucket="pub", acl="public-read", temp_dir=temp_dir),
        client=client,
    )

    assert adapter.get_endpoint() == "https://oss.example.com"
    assert adapter.get_url("img/a.png") == "https://oss.example.com/pub/img/a.png"


def test_endpoint_gets_scheme_from_secure_flag(minio):
    assert minio.get_endpoint() == "http://minio.local:9000"


def test_host_strips_scheme_and_trailing_slash():
    assert MinIOAdapter._host("https://play.min.io/") == "play.min.io"
    assert MinIOAdapter._host("localhost:9000") == "localhost:9000"
