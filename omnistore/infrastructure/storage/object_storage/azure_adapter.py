"""
Azure Blob Storage Adapter

Implements ObjectStorageInterface for one Azure Blob container.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, List, Optional

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)
from azure.storage.blob import (
    BlobSasPermissions,
    BlobServiceClient,
    ContainerClient,
    ContentSettings,
    generate_blob_sas,
)

from omnistore.infrastructure.exceptions import (
    AuthError,
    ObjectNotFoundError,
    QuotaError,
    StorageError,
    TransferError,
)

from .base import ObjectStorageInterface, ProviderConfig, Readable, StorageObject
from .content_type import detect_content_type
from .materializer import ChunkedReader
from .path_normalizer import matches_prefix, normalize_prefix

logger = logging.getLogger(__name__)

BLOB_ENDPOINT_FORMAT = "https://{account}.blob.core.windows.net"


class AzureBlobAdapter(ObjectStorageInterface):
    """
    Azure Blob implementation of ObjectStorageInterface

    ``access_id`` is the storage account name, ``access_key`` the account key
    and ``bucket`` the container name.
    """

    provider_name = "azureblob"

    # blobs per listing segment
    PAGE_SIZE = 5000

    def __init__(self, config: ProviderConfig, container_client: Optional[ContainerClient] = None):
        super().__init__(config)
        if container_client is None:
            service = BlobServiceClient(
                account_url=self._account_url(),
                credential={"account_name": config.access_id, "account_key": config.access_key},
            )
            container_client = service.get_container_client(config.bucket)
        self.container = container_client

    def _account_url(self) -> str:
        if self.config.endpoint:
            return self.config.endpoint.rstrip("/")
        return BLOB_ENDPOINT_FORMAT.format(account=self.config.access_id)

    def _translate_error(self, error: AzureError, path: str, action: str) -> StorageError:
        message = f"{action} failed for {path}: {error}"
        if isinstance(error, ResourceNotFoundError):
            return ObjectNotFoundError(message, path=path)
        if isinstance(error, ClientAuthenticationError):
            return AuthError(message, reason="invalid_credentials", path=path)
        if isinstance(error, HttpResponseError) and error.status_code in (413, 429, 503):
            return QuotaError(message, path=path)
        return TransferError(message, path=path)

    def get_stream(self, path: str) -> BinaryIO:
        key = self._require_key(path)
        try:
            downloader = self.container.download_blob(key)
        except AzureError as e:
            logger.error(f"❌ 获取文件失败 {self.config.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "get") from e
        return ChunkedReader(downloader.chunks())

    def put(self, path: str, reader: Readable) -> StorageObject:
        key = self._require_key(path)
        data = self.read_all(reader)
        content_type = detect_content_type(key, data)
        try:
            result = self.container.get_blob_client(key).upload_blob(
                data,
                length=len(data),
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )
        except AzureError as e:
            logger.error(f"❌ 文件上传失败 {self.config.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "put") from e

        logger.info(f"✅ 文件上传成功: {self.config.bucket}/{key}")
        last_modified = result.get("last_modified") or datetime.now(timezone.utc)
        return self._object(key, last_modified=last_modified, size=len(data))

    def delete(self, path: str) -> None:
        key = self._require_key(path)
        try:
            self.container.delete_blob(key)
        except AzureError as e:
            logger.error(f"❌ 删除文件失败 {self.config.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "delete") from e
        logger.info(f"✅ 文件删除成功: {self.config.bucket}/{key}")

    def list(self, path: str = "") -> List[StorageObject]:
        prefix = normalize_prefix(path)
        objects = []
        marker = None
        while True:
            try:
                pager = self.container.list_blobs(
                    name_starts_with=prefix or None,
                    results_per_page=self.PAGE_SIZE,
                ).by_page(continuation_token=marker)
                segment = next(pager, [])
                for blob in segment:
                    if not matches_prefix(blob.name, prefix):
                        continue
                    objects.append(self._object(blob.name, last_modified=blob.last_modified, size=blob.size))
            except AzureError as e:
                logger.error(f"❌ 列出文件失败 {self.config.bucket}/{prefix}: {e}")
                raise self._translate_error(e, prefix, "list") from e

            # the next segment starts at the marker returned with this one
            marker = pager.continuation_token
            if not marker:
                break

        logger.debug(f"列出文件成功: {self.config.bucket}/{prefix} (共{len(objects)}个文件)")
        return objects

    def get_url(self, path: str) -> str:
        key = self._require_key(path)
        blob_url = self.container.get_blob_client(key).url
        if self.config.is_public:
            return blob_url
        sas = generate_blob_sas(
            account_name=self.config.access_id,
            container_name=self.config.bucket,
            blob_name=key,
            account_key=self.config.access_key,
            permission=BlobSasPermissions(read=True),
            expiry=datetime.now(timezone.utc) + timedelta(seconds=self.config.url_expires),
        )
        return f"{blob_url}?{sas}"

    def get_endpoint(self) -> str:
        if self.config.endpoint:
            return self.config.endpoint
        return self.container.url

    def close(self) -> None:
        self.container.close()
