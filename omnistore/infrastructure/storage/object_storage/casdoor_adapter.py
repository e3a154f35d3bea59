"""
Casdoor Resource Storage Adapter

Stores objects as Casdoor resources through the Casdoor HTTP API. The storage
provider configured in Casdoor decides where the bytes end up; this adapter
only needs the provider name and an application's client id / secret.
"""

import logging
import posixpath
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, List, Optional
from urllib.parse import urlsplit

import requests

from omnistore.infrastructure.exceptions import (
    AuthError,
    ObjectNotFoundError,
    StorageError,
    TransferError,
)

from .base import ObjectStorageInterface, ProviderConfig, Readable, StorageObject
from .content_type import detect_content_type
from .materializer import ChunkedReader
from .path_normalizer import matches_prefix, normalize_path, normalize_prefix

logger = logging.getLogger(__name__)

RESOURCE_USER = "casdoor-oss"
PROVIDER_OWNER = "admin"


class CasdoorAdapter(ObjectStorageInterface):
    """
    Casdoor implementation of ObjectStorageInterface

    ``access_id``/``access_key`` are the application's client id and secret,
    ``options`` carry ``organization``, ``application`` and ``provider``.
    The provider's bucket, path prefix and domain are fetched on first use.
    """

    provider_name = "casdoor"

    CHUNK_SIZE = 64 * 1024

    def __init__(self, config: ProviderConfig, http_session: Optional[requests.Session] = None):
        super().__init__(config)
        self.endpoint = config.endpoint.rstrip("/")
        self.organization = config.option("organization", "built-in")
        self.application = config.option("application", "app-built-in")
        self.provider = config.option("provider", "")
        self.timeout = float(config.option("timeout", 60))
        self.http = http_session or requests.Session()

        self._prefix: Optional[str] = None
        self._custom_domain: Optional[str] = None

    def _api(self, http_method: str, name: str, path: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        """Call ``/api/<name>`` and decode the ``{status, msg, data, data2}`` envelope"""
        # credentials go to the Casdoor API only, never to the storage host serving downloads
        url = f"{self.endpoint}/api/{name}"
        try:
            response = self.http.request(
                http_method,
                url,
                auth=(self.config.access_id, self.config.access_key),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise TransferError(f"Casdoor request {name} failed: {e}", path=path) from e

        if response.status_code in (401, 403):
            raise AuthError(f"Casdoor rejected {name}: HTTP {response.status_code}",
                            code=response.status_code, reason="invalid_credentials", path=path)
        if response.status_code != 200:
            raise TransferError(f"Casdoor request {name} failed with HTTP {response.status_code}", path=path)
        try:
            payload = response.json()
        except ValueError as e:
            raise TransferError(f"Casdoor request {name} returned an invalid body", path=path) from e

        if payload.get("status") == "error":
            raise self._translate_error(payload.get("msg") or "", name, path)
        return payload

    @staticmethod
    def _translate_error(msg: str, name: str, path: Optional[str]) -> StorageError:
        message = f"Casdoor {name} failed: {msg}"
        lowered = msg.lower()
        if "not found" in lowered or "doesn't exist" in lowered or "does not exist" in lowered:
            return ObjectNotFoundError(message, path=path)
        if "unauthorized" in lowered or "permission" in lowered or "please sign in" in lowered:
            return AuthError(message, reason="invalid_credentials", path=path)
        return TransferError(message, path=path)

    def _resolve_provider(self) -> None:
        if self._prefix is not None:
            return
        payload = self._api("GET", "get-provider", params={"id": f"{PROVIDER_OWNER}/{self.provider}"})
        provider = payload.get("data") or {}
        if not provider:
            raise ObjectNotFoundError(f"Casdoor provider not found: {self.provider}")
        self._prefix = normalize_prefix(posixpath.join(provider.get("bucket") or "", provider.get("pathPrefix") or ""))
        self._custom_domain = (provider.get("domain") or "").rstrip("/")
        logger.info(f"✅ Casdoor 存储提供方已解析: {self.provider} (前缀: {self._prefix or '/'})")

    @property
    def prefix(self) -> str:
        self._resolve_provider()
        return self._prefix

    @property
    def custom_domain(self) -> str:
        self._resolve_provider()
        return self._custom_domain

    def _resource_name(self, key: str) -> str:
        domain_path = urlsplit(self.custom_domain).path
        return posixpath.join(domain_path, key) if domain_path else key

    def _key_from_url(self, url: str) -> str:
        """Canonical key of a resource URL: domain path and provider prefix removed"""
        key = normalize_path(url)
        for root in (normalize_path(urlsplit(self.custom_domain).path), self.prefix):
            root = root.rstrip("/")
            if root and key.startswith(root + "/"):
                key = key[len(root) + 1:]
        return key

    def get_stream(self, path: str) -> BinaryIO:
        key = self._require_key(path)
        url = self.get_url(key)
        try:
            response = self.http.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"❌ 获取文件失败 {key}: {e}")
            raise TransferError(f"Failed to fetch {key}: {e}", path=key) from e

        if response.status_code != 200:
            response.close()
            logger.error(f"❌ 获取文件失败 {key}: HTTP {response.status_code}")
            if response.status_code == 404:
                raise ObjectNotFoundError(f"Object not found: {key}", path=key)
            raise TransferError(f"Failed to fetch {key}: HTTP {response.status_code}", path=key)
        return ChunkedReader(response.iter_content(chunk_size=self.CHUNK_SIZE), on_close=response.close)

    def put(self, path: str, reader: Readable) -> StorageObject:
        key = self._require_key(path)
        data = self.read_all(reader)
        params = {
            "owner": self.organization,
            "user": RESOURCE_USER,
            "application": self.application,
            "tag": "",
            "parent": "",
            "fullFilePath": key,
            "provider": self.provider,
        }
        files = {"file": (posixpath.basename(key), data, detect_content_type(key, data))}
        try:
            payload = self._api("POST", "upload-resource", path=key, params=params, files=files)
        except StorageError as e:
            logger.error(f"❌ 文件上传失败 {key}: {e}")
            raise

        file_url = payload.get("data") or ""
        logger.info(f"✅ 文件上传成功: {file_url or key}")
        return self._object(
            self._key_from_url(file_url) if file_url else key,
            last_modified=datetime.now(timezone.utc),
            size=len(data),
        )

    def delete(self, path: str) -> None:
        key = self._require_key(path)
        resource = {
            "owner": self.organization,
            "name": self._resource_name(key),
            "application": self.application,
            "provider": self.provider,
        }
        try:
            self._api("POST", "delete-resource", path=key, json=resource)
        except StorageError as e:
            logger.error(f"❌ 删除文件失败 {key}: {e}")
            raise
        logger.info(f"✅ 文件删除成功: {key}")

    def list(self, path: str = "") -> List[StorageObject]:
        prefix = normalize_prefix(path)
        params = {
            "owner": self.organization,
            "user": RESOURCE_USER,
            "field": "provider",
            "value": self.provider,
            "sortField": "Direct",
            "sortOrder": self._resource_name(prefix).lstrip("/"),
        }
        try:
            payload = self._api("GET", "get-resources", path=prefix, params=params)
        except StorageError as e:
            logger.error(f"❌ 列出文件失败 {prefix}: {e}")
            raise

        objects = []
        for item in payload.get("data") or []:
            key = self._key_from_url(item.get("url") or item.get("name") or "")
            if not key or not matches_prefix(key, prefix):
                continue
            objects.append(self._object(
                key,
                last_modified=self._parse_time(item.get("createdTime")),
                size=item.get("fileSize"),
            ))
        logger.debug(f"列出文件成功: {self.provider}/{prefix} (共{len(objects)}个文件)")
        return objects

    @staticmethod
    def _parse_time(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"无法解析资源时间: {value}")
            return None

    def get_url(self, path: str) -> str:
        key = self._require_key(path)
        return f"{self.custom_domain}/{key}"

    def get_endpoint(self) -> str:
        return self.config.endpoint

    def close(self) -> None:
        self.http.close()
