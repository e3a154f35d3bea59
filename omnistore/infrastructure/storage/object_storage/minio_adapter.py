"""
MinIO Object Storage Adapter

Implements ObjectStorageInterface for MinIO and other S3-compatible services
(Aliyun OSS, Tencent COS, Qiniu Kodo in S3 mode, ...).
This adapter wraps the MinIO client to provide a consistent interface.
"""

import io
import logging
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, List, Optional

from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError

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

NOT_FOUND_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket", "ResourceNotFound"}
AUTH_CODES = {"AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch", "ExpiredToken"}
QUOTA_CODES = {"EntityTooLarge", "QuotaExceeded", "SlowDown", "XMinioStorageFull", "TooManyRequests"}


class MinIOAdapter(ObjectStorageInterface):
    """
    MinIO implementation of ObjectStorageInterface

    Provides object storage capabilities using MinIO server.
    """

    provider_name = "minio"

    def __init__(self, config: ProviderConfig, client: Optional[Minio] = None):
        super().__init__(config)
        self.bucket = config.bucket
        self.client = client or Minio(
            endpoint=self._host(config.endpoint),
            access_key=config.access_id,
            secret_key=config.access_key,
            secure=config.secure,
            region=config.region,
        )

    @staticmethod
    def _host(endpoint: str) -> str:
        # Minio() takes host[:port] without scheme
        for scheme in ("https://", "http://"):
            if endpoint.startswith(scheme):
                endpoint = endpoint[len(scheme):]
        return endpoint.rstrip("/")

    def _translate_error(self, error: Exception, path: str, action: str) -> StorageError:
        if isinstance(error, S3Error):
            message = f"{action} failed for {path}: {error.code}"
            if error.code in NOT_FOUND_CODES:
                return ObjectNotFoundError(message, path=path)
            if error.code in AUTH_CODES:
                return AuthError(message, reason="invalid_credentials", path=path)
            if error.code in QUOTA_CODES:
                return QuotaError(message, path=path)
            return TransferError(message, path=path)
        return TransferError(f"{action} failed for {path}: {error}", path=path)

    def get_stream(self, path: str) -> BinaryIO:
        """Get file as a stream"""
        key = self._require_key(path)
        try:
            logger.debug(f"正在获取文件流: {self.bucket}/{key}")
            return self.client.get_object(bucket_name=self.bucket, object_name=key)
        except (S3Error, HTTPError) as e:
            logger.error(f"❌ 获取文件失败 {self.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "get") from e

    def put(self, path: str, reader: Readable) -> StorageObject:
        """Upload file object (bytes or stream) to MinIO"""
        key = self._require_key(path)
        data = self.read_all(reader)
        content_type = detect_content_type(key, data)
        try:
            logger.debug(f"正在上传文件: {self.bucket}/{key} (大小: {len(data)}字节, 类型: {content_type})")
            result = self.client.put_object(
                bucket_name=self.bucket,
                object_name=key,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except (S3Error, HTTPError) as e:
            logger.error(f"❌ 文件上传失败 {self.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "put") from e

        logger.info(f"✅ 文件对象上传成功: {self.bucket}/{key}")
        last_modified = getattr(result, "last_modified", None) or datetime.now(timezone.utc)
        return self._object(key, last_modified=last_modified, size=len(data))

    def delete(self, path: str) -> None:
        """Delete file from MinIO, missing keys are tolerated by the backend"""
        key = self._require_key(path)
        try:
            logger.debug(f"正在删除文件: {self.bucket}/{key}")
            self.client.remove_object(bucket_name=self.bucket, object_name=key)
        except (S3Error, HTTPError) as e:
            logger.error(f"❌ 删除文件失败 {self.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "delete") from e
        logger.info(f"✅ 文件删除成功: {self.bucket}/{key}")

    def list(self, path: str = "") -> List[StorageObject]:
        """List files in bucket with prefix filter"""
        prefix = normalize_prefix(path)
        objects = []
        try:
            # the generator follows continuation tokens until the listing is exhausted
            for obj in self.client.list_objects(bucket_name=self.bucket, prefix=prefix or None, recursive=True):
                if obj.is_dir or not matches_prefix(obj.object_name, prefix):
                    continue
                objects.append(self._object(
                    obj.object_name,
                    last_modified=obj.last_modified,
                    size=obj.size,
                ))
        except (S3Error, HTTPError) as e:
            logger.error(f"❌ 列出文件失败 {self.bucket}/{prefix}: {e}")
            raise self._translate_error(e, prefix, "list") from e

        logger.debug(f"列出文件成功: {self.bucket}/{prefix} (共{len(objects)}个文件)")
        return objects

    def get_url(self, path: str) -> str:
        """Public URL for public-read buckets, presigned URL otherwise"""
        key = self._require_key(path)
        if self.config.is_public:
            return f"{self.get_endpoint()}/{self.bucket}/{key}"

        expires = timedelta(seconds=self.config.url_expires)
        try:
            url = self.client.presigned_get_object(
                bucket_name=self.bucket,
                object_name=key,
                expires=expires,
            )
        except (S3Error, HTTPError, ValueError) as e:
            logger.error(f"❌ 生成URL失败 {self.bucket}/{key}: {e}")
            raise TransferError(f"Failed to presign {key}: {e}", path=key) from e

        logger.debug(f"生成临时URL: {self.bucket}/{key} (过期时间: {expires})")
        return url

    def get_endpoint(self) -> str:
        endpoint = self.config.endpoint.rstrip("/")
        if "://" in endpoint:
            return endpoint
        scheme = "https" if self.config.secure else "http"
        return f"{scheme}://{endpoint}"
