"""
Local FileSystem Storage Adapter

Implements ObjectStorageInterface on top of a local directory. Used for
development, single-host deployments and tests.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import BinaryIO, List

from omnistore.infrastructure.exceptions import ObjectNotFoundError, TransferError

from .base import ObjectStorageInterface, ProviderConfig, Readable, StorageObject
from .path_normalizer import matches_prefix, normalize_prefix

logger = logging.getLogger(__name__)


class FileSystemAdapter(ObjectStorageInterface):
    """
    FileSystem implementation of ObjectStorageInterface

    ``config.bucket`` is the root directory; keys map to files below it.
    """

    provider_name = "filesystem"

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self.root = Path(config.bucket or ".").resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for_key(self, path: str) -> Path:
        key = self._require_key(path)
        parts = PurePosixPath(key).parts
        if ".." in parts:
            raise ValueError(f"invalid storage key: {path!r}")
        return self.root.joinpath(*parts)

    def _key_for_path(self, file_path: Path) -> str:
        return file_path.relative_to(self.root).as_posix()

    def get_stream(self, path: str) -> BinaryIO:
        file_path = self._path_for_key(path)
        try:
            return file_path.open("rb")
        except (FileNotFoundError, IsADirectoryError) as e:
            raise ObjectNotFoundError(f"Object not found: {path}", path=path) from e
        except OSError as e:
            logger.error(f"❌ 打开文件失败 {file_path}: {e}")
            raise TransferError(f"Failed to open {path}: {e}", path=path) from e

    def put(self, path: str, reader: Readable) -> StorageObject:
        file_path = self._path_for_key(path)
        data = self.read_all(reader)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with file_path.open("wb") as out:
                out.write(data)
            stat = file_path.stat()
        except OSError as e:
            logger.error(f"❌ 文件写入失败 {file_path}: {e}")
            raise TransferError(f"Failed to write {path}: {e}", path=path) from e

        logger.info(f"✅ 文件写入成功: {file_path}")
        return self._object(
            self._key_for_path(file_path),
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            size=stat.st_size,
        )

    def delete(self, path: str) -> None:
        file_path = self._path_for_key(path)
        try:
            file_path.unlink()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(f"Object not found: {path}", path=path) from e
        except OSError as e:
            logger.error(f"❌ 删除文件失败 {file_path}: {e}")
            raise TransferError(f"Failed to delete {path}: {e}", path=path) from e
        logger.info(f"✅ 文件删除成功: {file_path}")

    def list(self, path: str = "") -> List[StorageObject]:
        prefix = normalize_prefix(path)
        objects = []
        for current, _dirs, files in os.walk(self.root):
            for filename in files:
                file_path = Path(current) / filename
                key = self._key_for_path(file_path)
                if not matches_prefix(key, prefix):
                    continue
                stat = file_path.stat()
                objects.append(self._object(
                    key,
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    size=stat.st_size,
                ))
        objects.sort(key=lambda obj: obj.path)
        logger.debug(f"列出文件成功: {self.root}/{prefix} (共{len(objects)}个文件)")
        return objects

    def get_url(self, path: str) -> str:
        return self._path_for_key(path).as_uri()

    def get_endpoint(self) -> str:
        return self.config.endpoint or "/"
