"""
Synology NAS Storage Adapter

Implements ObjectStorageInterface on top of the DSM FileStation web API.
Keys are relative to the configured shared folder, e.g. with shared folder
``/home`` the key ``docs/a.txt`` is stored at ``/home/docs/a.txt``.
"""

import json
import logging
import posixpath
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, List, Optional

import requests

from omnistore.infrastructure.exceptions import (
    AuthError,
    ObjectNotFoundError,
    QuotaError,
    SessionExpiredError,
    StorageError,
    TransferError,
)

from .base import ObjectStorageInterface, ProviderConfig, Readable, StorageObject
from .content_type import detect_content_type
from .materializer import ChunkedReader
from .path_normalizer import matches_prefix, normalize_prefix, strip_root, to_physical_path
from .synology_session import SynologySessionManager

logger = logging.getLogger(__name__)

DOWNLOAD_API = "SYNO.FileStation.Download"
UPLOAD_API = "SYNO.FileStation.Upload"
DELETE_API = "SYNO.FileStation.Delete"
LIST_API = "SYNO.FileStation.List"

# DSM common / FileStation error codes
SESSION_ERROR_CODES = {106, 107, 119}  # timeout, interrupted by duplicate login, SID not found
PERMISSION_ERROR_CODES = {105}
NOT_FOUND_CODES = {408}
QUOTA_ERROR_CODES = {415, 416, 1804}  # disk quota, no space left, file size limit


class SynologyAdapter(ObjectStorageInterface):
    """
    Synology FileStation implementation of ObjectStorageInterface

    ``access_id``/``access_key`` are the DSM account and password,
    ``shared_folder`` the root every key lives under. Every operation goes
    through ``SynologySessionManager.ensure_active`` first, a session error
    reported by DSM triggers exactly one re-login and retry.
    """

    provider_name = "synology"

    LIST_PAGE_SIZE = 1000
    CHUNK_SIZE = 64 * 1024

    def __init__(self, config: ProviderConfig, http_session: Optional[requests.Session] = None):
        super().__init__(config)
        self.endpoint = config.endpoint.rstrip("/")
        self.shared_folder = config.shared_folder
        self.timeout = float(config.option("timeout", 60))
        self.verify = bool(config.option("verify_ssl", True))
        self.http = http_session or requests.Session()
        self.sessions = SynologySessionManager(
            endpoint=self.endpoint,
            account=config.access_id,
            password=config.access_key,
            http_session=self.http,
            application=config.option("application_scope", "FileStation"),
            otp_code=config.option("otp_code"),
            timeout=self.timeout,
            verify=self.verify,
        )

    def _physical(self, key: str) -> str:
        return to_physical_path(self.shared_folder, key)

    def _api_url(self, api: str) -> str:
        return f"{self.endpoint}/webapi/{self.sessions.api_path(api)}"

    def _api_params(self, api: str, version: int, method: str, **params) -> Dict[str, Any]:
        query = {"api": api, "version": self.sessions.api_version(api, version), "method": method}
        query.update(params)
        return query

    @staticmethod
    def _raise_for_envelope(payload: dict, path: Optional[str]) -> None:
        if payload.get("success"):
            return
        error = payload.get("error") or {}
        code = error.get("code")
        # file operations report per-path failures in error.errors
        codes = {code} | {item.get("code") for item in error.get("errors") or [] if isinstance(item, dict)}
        message = f"Synology API error {code}" + (f" for {path}" if path else "")

        if code in SESSION_ERROR_CODES:
            raise SessionExpiredError(message, code=code, reason="session_expired", path=path)
        if code in PERMISSION_ERROR_CODES:
            raise AuthError(message, code=code, reason="permission_denied", path=path)
        if codes & NOT_FOUND_CODES:
            raise ObjectNotFoundError(message, path=path)
        if codes & QUOTA_ERROR_CODES:
            raise QuotaError(message, path=path)
        raise TransferError(message, path=path)

    def _request_once(
        self,
        api: str,
        version: int,
        method: str,
        params: Dict[str, Any],
        http_method: str = "GET",
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        stream: bool = False,
        path: Optional[str] = None,
    ):
        # api versions and paths are only known once a session discovered them
        self.sessions.ensure_active()
        signed = self.sessions.sign(self._api_params(api, version, method, **params))
        try:
            response = self.http.request(
                http_method,
                self._api_url(api),
                params=signed.params,
                headers=signed.headers,
                data=data,
                files=files,
                stream=stream,
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as e:
            raise TransferError(f"Synology request {api} failed: {e}", path=path) from e

        if response.status_code != 200:
            response.close()
            raise TransferError(f"Synology request {api} failed with HTTP {response.status_code}", path=path)

        content_type = response.headers.get("Content-Type", "")
        if stream and "application/json" not in content_type:
            return response

        # downloads answer with a JSON envelope instead of content on failure
        try:
            payload = response.json()
        except ValueError as e:
            raise TransferError(f"Synology request {api} returned an invalid body", path=path) from e
        finally:
            if stream:
                response.close()
        self._raise_for_envelope(payload, path)
        return payload.get("data") or {}

    def _request(self, api: str, version: int, method: str, params: Dict[str, Any], **kwargs):
        """Send a signed request, logging in again once when DSM reports a dead session"""
        try:
            return self._request_once(api, version, method, params, **kwargs)
        except SessionExpiredError as e:
            logger.info(f"Synology 会话失效(code={e.code}), 重新登录后重试: {api}")
            self.sessions.invalidate()
            return self._request_once(api, version, method, params, **kwargs)

    def get_stream(self, path: str) -> BinaryIO:
        key = self._require_key(path)
        params = {"path": self._physical(key), "mode": "download"}
        try:
            response = self._request(DOWNLOAD_API, 2, "download", params, stream=True, path=key)
        except StorageError as e:
            logger.error(f"❌ 获取文件失败 {key}: {e}")
            raise
        return ChunkedReader(response.iter_content(chunk_size=self.CHUNK_SIZE), on_close=response.close)

    def put(self, path: str, reader: Readable) -> StorageObject:
        key = self._require_key(path)
        data = self.read_all(reader)
        folder = self._physical(posixpath.dirname(key))
        name = posixpath.basename(key)
        form = {"path": folder, "overwrite": "true", "create_parents": "true"}
        # the file part must come after the form fields
        files = {"file": (name, data, detect_content_type(key, data))}
        try:
            self._request(UPLOAD_API, 2, "upload", {}, http_method="POST", data=form, files=files, path=key)
        except StorageError as e:
            logger.error(f"❌ 文件上传失败 {key}: {e}")
            raise

        logger.info(f"✅ 文件上传成功: {folder}/{name}")
        return self._object(key, last_modified=datetime.now(timezone.utc), size=len(data))

    def delete(self, path: str) -> None:
        key = self._require_key(path)
        # "delete" is the blocking variant of the start/status task API
        params = {"path": self._physical(key), "recursive": "false"}
        try:
            self._request(DELETE_API, 2, "delete", params, path=key)
        except StorageError as e:
            logger.error(f"❌ 删除文件失败 {key}: {e}")
            raise
        logger.info(f"✅ 文件删除成功: {self._physical(key)}")

    def list(self, path: str = "") -> List[StorageObject]:
        prefix = normalize_prefix(path)
        objects: List[StorageObject] = []
        folders = [posixpath.dirname(prefix)]
        while folders:
            folder = folders.pop(0)
            try:
                entries = self._list_folder(folder)
            except ObjectNotFoundError:
                logger.debug(f"目录不存在, 跳过: {self._physical(folder)}")
                continue
            except StorageError as e:
                logger.error(f"❌ 列出文件失败 {self._physical(folder)}: {e}")
                raise

            for entry in entries:
                key = strip_root(self.shared_folder, entry.get("path", ""))
                if entry.get("isdir"):
                    # descend only where keys below can still match the prefix
                    if matches_prefix(key, prefix) or prefix.startswith(key + "/"):
                        folders.append(key)
                    continue
                if not matches_prefix(key, prefix):
                    continue
                additional = entry.get("additional") or {}
                mtime = (additional.get("time") or {}).get("mtime")
                objects.append(self._object(
                    key,
                    last_modified=datetime.fromtimestamp(mtime, tz=timezone.utc) if mtime else None,
                    size=additional.get("size"),
                    name=entry.get("name", ""),
                ))

        objects.sort(key=lambda obj: obj.path)
        logger.debug(f"列出文件成功: {self._physical(prefix)} (共{len(objects)}个文件)")
        return objects

    def _list_folder(self, folder: str) -> List[dict]:
        """All entries of one folder, following offset/limit pages"""
        entries: List[dict] = []
        offset = 0
        while True:
            params = {
                "folder_path": self._physical(folder),
                "offset": offset,
                "limit": self.LIST_PAGE_SIZE,
                "additional": json.dumps(["size", "time"]),
            }
            data = self._request(LIST_API, 2, "list", params, path=folder)
            page = data.get("files") or []
            entries.extend(page)
            offset += len(page)
            if not page or offset >= int(data.get("total", 0)):
                return entries

    def get_url(self, path: str) -> str:
        """Download URL carrying the current session id, valid while the session lives"""
        key = self._require_key(path)
        self.sessions.ensure_active()
        params = self._api_params(DOWNLOAD_API, 2, "download", path=self._physical(key), mode="download")
        signed = self.sessions.sign(params)
        request = requests.Request("GET", self._api_url(DOWNLOAD_API), params=signed.params).prepare()
        return request.url

    def get_endpoint(self) -> str:
        return self.config.endpoint

    def close(self) -> None:
        self.sessions.logout()
        self.http.close()
