"""
AWS S3 / Cloudflare R2 Storage Adapter

Implements ObjectStorageInterface with boto3. Cloudflare R2 is addressed by
its S3-compatible endpoint ``https://<account_id>.r2.cloudflarestorage.com``.
"""

import logging
from datetime import datetime, timezone
from typing import BinaryIO, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

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

R2_ENDPOINT_FORMAT = "https://{account_id}.r2.cloudflarestorage.com"

NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404", "NoSuchBucket"}
AUTH_CODES = {"AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch", "ExpiredToken", "403"}
QUOTA_CODES = {"EntityTooLarge", "QuotaExceeded", "SlowDown", "TooManyRequests", "ServiceUnavailable", "429"}


class S3Adapter(ObjectStorageInterface):
    """S3 implementation of ObjectStorageInterface (AWS S3, Cloudflare R2)"""

    provider_name = "s3"

    # page size for list_objects_v2
    PAGE_SIZE = 1000

    def __init__(self, config: ProviderConfig, client=None):
        super().__init__(config)
        self.bucket = config.bucket
        if client is None:
            session_kwargs = {"region_name": config.region or ("auto" if config.option("account_id") else None)}
            if config.access_id and config.access_key:
                session_kwargs["aws_access_key_id"] = config.access_id
                session_kwargs["aws_secret_access_key"] = config.access_key
            endpoint = self._endpoint_url()
            if endpoint:
                session_kwargs["endpoint_url"] = endpoint
            client = boto3.client("s3", **session_kwargs)
        self.client = client

    def _endpoint_url(self) -> Optional[str]:
        if self.config.endpoint:
            return self.config.endpoint.rstrip("/")
        account_id = self.config.option("account_id")
        if account_id:
            return R2_ENDPOINT_FORMAT.format(account_id=account_id)
        return None

    def _translate_error(self, error: Exception, path: str, action: str) -> StorageError:
        if isinstance(error, ClientError):
            code = str(error.response.get("Error", {}).get("Code", ""))
            message = f"{action} failed for {path}: {code}"
            if code in NOT_FOUND_CODES:
                return ObjectNotFoundError(message, path=path)
            if code in AUTH_CODES:
                return AuthError(message, reason="invalid_credentials", path=path)
            if code in QUOTA_CODES:
                return QuotaError(message, path=path)
            return TransferError(message, path=path)
        return TransferError(f"{action} failed for {path}: {error}", path=path)

    def get_stream(self, path: str) -> BinaryIO:
        key = self._require_key(path)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"❌ 获取文件失败 {self.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "get") from e
        return response["Body"]

    def put(self, path: str, reader: Readable) -> StorageObject:
        key = self._require_key(path)
        data = self.read_all(reader)
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentLength": len(data),
            "ContentType": detect_content_type(key, data),
        }
        if self.config.is_public:
            params["ACL"] = self.config.acl

        try:
            self.client.put_object(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"❌ 文件上传失败 {self.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "put") from e

        logger.info(f"✅ 文件上传成功: {self.bucket}/{key}")
        return self._object(key, last_modified=datetime.now(timezone.utc), size=len(data))

    def delete(self, path: str) -> None:
        key = self._require_key(path)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"❌ 删除文件失败 {self.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "delete") from e
        logger.info(f"✅ 文件删除成功: {self.bucket}/{key}")

    def list(self, path: str = "") -> List[StorageObject]:
        prefix = normalize_prefix(path)
        objects = []
        params = {"Bucket": self.bucket, "Prefix": prefix, "MaxKeys": self.PAGE_SIZE}
        pages = 0
        while True:
            try:
                response = self.client.list_objects_v2(**params)
            except (ClientError, BotoCoreError) as e:
                logger.error(f"❌ 列出文件失败 {self.bucket}/{prefix}: {e}")
                raise self._translate_error(e, prefix, "list") from e
            pages += 1

            for content in response.get("Contents", []):
                if not matches_prefix(content["Key"], prefix):
                    continue
                objects.append(self._object(
                    content["Key"],
                    last_modified=content.get("LastModified"),
                    size=content.get("Size"),
                ))

            token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not token:
                break
            params["ContinuationToken"] = token

        logger.debug(f"列出文件成功: {self.bucket}/{prefix} (共{len(objects)}个文件, {pages}页)")
        return objects

    def get_url(self, path: str) -> str:
        key = self._require_key(path)
        if self.config.is_public:
            return f"{self.get_endpoint()}/{self.bucket}/{key}"
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.config.url_expires,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"❌ 生成URL失败 {self.bucket}/{key}: {e}")
            raise self._translate_error(e, key, "presign") from e

    def get_endpoint(self) -> str:
        endpoint = self._endpoint_url()
        if endpoint:
            return endpoint
        return self.client.meta.endpoint_url

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if callable(close):
            close()
