"""
Google Cloud Storage Adapter

Implements ObjectStorageInterface for one Google Cloud Storage bucket.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, List, Optional

from google.api_core.exceptions import (
    Forbidden,
    GoogleAPIError,
    NotFound,
    TooManyRequests,
    Unauthorized,
)
from google.cloud import storage

from omnistore.infrastructure.exceptions import (
    AuthError,
    ObjectNotFoundError,
    QuotaError,
    StorageError,
    TransferError,
)

from .base import ObjectStorageInterface, ProviderConfig, Readable, StorageObject
from .content_type import detect_content_type
from .path_normalizer import matches_prefix, normalize_prefix

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://storage.googleapis.com"


class GoogleCloudAdapter(ObjectStorageInterface):
    """
    Google Cloud Storage implementation of ObjectStorageInterface

    Credentials come from ``options.credentials_file`` (service account JSON)
    or from the environment's application default credentials.
    """

    provider_name = "googlecloud"

    PAGE_SIZE = 1000

    def __init__(self, config: ProviderConfig, client: Optional[storage.Client] = None):
        super().__init__(config)
        if client is None:
            client_options = {"api_endpoint": config.endpoint} if config.endpoint else None
            credentials_file = config.option("credentials_file")
            if credentials_file:
                client = storage.Client.from_service_account_json(
                    credentials_file,
                    project=config.option("project"),
                    client_options=client_options,
                )
            else:
                client = storage.Client(project=config.option("project"), client_options=client_options)
        self.client = client
        self.bucket = client.bucket(config.bucket)

    def _translate_error(self, error: GoogleAPIError, path: str, action: str) -> StorageError:
        message = f"{action} failed for {path}: {error}"
        if isinstance(error, NotFound):
            return ObjectNotFoundError(message, path=path)
        if isinstance(error, (Unauthorized, Forbidden)):
            return AuthError(message, reason="invalid_credentials", path=path)
        if isinstance(error, TooManyRequests):
            return QuotaError(message, path=path)
        return TransferError(message, path=path)

    def get_stream(self, path: str) -> BinaryIO:
        key = self._require_key(path)
        blob = self.bucket.blob(key)
        try:
            # the reader is lazy, fetch metadata first so missing objects fail here
            blob.reload()
            return blob.open("rb")
        except GoogleAPIError as e:
            logger.error(f"❌ 获取文件失败 {self.config.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "get") from e

    def put(self, path: str, reader: Readable) -> StorageObject:
        key = self._require_key(path)
        data = self.read_all(reader)
        blob = self.bucket.blob(key)
        storage_class = self.config.option("storage_class")
        if storage_class:
            blob.storage_class = storage_class
        try:
            blob.upload_from_string(data, content_type=detect_content_type(key, data))
        except GoogleAPIError as e:
            logger.error(f"❌ 文件上传失败 {self.config.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "put") from e

        logger.info(f"✅ 文件上传成功: {self.config.bucket}/{key}")
        return self._object(key, last_modified=blob.updated or datetime.now(timezone.utc), size=len(data))

    def delete(self, path: str) -> None:
        key = self._require_key(path)
        try:
            self.bucket.blob(key).delete()
        except GoogleAPIError as e:
            logger.error(f"❌ 删除文件失败 {self.config.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "delete") from e
        logger.info(f"✅ 文件删除成功: {self.config.bucket}/{key}")

    def list(self, path: str = "") -> List[StorageObject]:
        prefix = normalize_prefix(path)
        objects = []
        page_token = None
        while True:
            try:
                iterator = self.client.list_blobs(
                    self.bucket,
                    prefix=prefix or None,
                    page_size=self.PAGE_SIZE,
                    page_token=page_token,
                )
                page = next(iterator.pages, None)
                for blob in page or []:
                    if not matches_prefix(blob.name, prefix):
                        continue
                    objects.append(self._object(blob.name, last_modified=blob.updated, size=blob.size))
            except GoogleAPIError as e:
                logger.error(f"❌ 列出文件失败 {self.config.bucket}/{prefix}: {e}")
                raise self._translate_error(e, prefix, "list") from e

            page_token = iterator.next_page_token
            if not page_token:
                break

        logger.debug(f"列出文件成功: {self.config.bucket}/{prefix} (共{len(objects)}个文件)")
        return objects

    def get_url(self, path: str) -> str:
        key = self._require_key(path)
        blob = self.bucket.blob(key)
        if self.config.is_public:
            return blob.public_url
        try:
            return blob.generate_signed_url(
                version="v4",
                expiration=timedelta(seconds=self.config.url_expires),
                method="GET",
            )
        except (GoogleAPIError, AttributeError, ValueError) as e:
            # AttributeError: credentials without a private key cannot sign
            logger.error(f"❌ 生成URL失败 {self.config.bucket}/{key}: {e}")
            raise TransferError(f"Failed to sign URL for {key}: {e}", path=key) from e

    def get_endpoint(self) -> str:
        return self.config.endpoint or DEFAULT_ENDPOINT

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if callable(close):
            close()
