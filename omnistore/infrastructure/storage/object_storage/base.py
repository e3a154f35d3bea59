"""
Object Storage Abstract Base Classes

Defines the interface for object storage implementations to ensure
consistency across different providers (local filesystem, MinIO, AWS S3 /
Cloudflare R2, Azure Blob, Google Cloud Storage, Synology NAS, Casdoor).
"""

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, BinaryIO, Dict, List, Mapping, Optional, Union

from .materializer import StreamMaterializer
from .path_normalizer import basename, normalize_path

ACL_PRIVATE = "private"
ACL_PUBLIC_READ = "public-read"

Readable = Union[bytes, bytearray, BinaryIO]


@dataclass(frozen=True)
class ProviderConfig:
    """Per-backend credentials and addressing, immutable after adapter construction"""
    endpoint: str = ""
    access_id: str = ""
    access_key: str = ""
    bucket: str = ""
    region: Optional[str] = None
    secure: bool = True
    shared_folder: str = ""
    acl: str = ACL_PRIVATE
    url_expires: int = 3600
    temp_dir: Optional[str] = None

    # provider specific values: account_id, otp_code, storage_class, organization, ...
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    def option(self, key: str, default: Any = None) -> Any:
        value = self.options.get(key)
        return default if value in (None, "") else value

    @property
    def is_public(self) -> bool:
        return self.acl == ACL_PUBLIC_READ


@dataclass
class StorageObject:
    """Result of a storage operation"""
    path: str
    name: str = ""
    last_modified: Optional[datetime] = None
    size: int = 0
    storage: Optional["ObjectStorageInterface"] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        self.path = normalize_path(self.path)
        if not self.name:
            self.name = basename(self.path)

    def get(self) -> BinaryIO:
        """Fetch the object's content as a seekable temp file"""
        return self._require_storage().get(self.path)

    def get_stream(self) -> BinaryIO:
        """Fetch the object's content as a stream"""
        return self._require_storage().get_stream(self.path)

    def _require_storage(self) -> "ObjectStorageInterface":
        if self.storage is None:
            raise ValueError(f"Object '{self.path}' is not bound to a storage adapter")
        return self.storage

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "name": self.name,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
            "size": self.size,
        }


class ObjectStorageInterface(ABC):
    """
    Abstract interface for object storage operations

    This interface defines the contract that all object storage
    implementations must follow, enabling easy switching between
    different providers. Every operation accepts any path representation
    understood by ``normalize_path`` (URL, Windows path, relative key).

    An adapter instance is meant for one logical session: it owns its client
    (and session, if any) and is not safe to mutate from several threads
    without external locking.
    """

    provider_name = "abstract"

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.materializer = StreamMaterializer(temp_dir=config.temp_dir, prefix=self.provider_name)

    @staticmethod
    def to_relative_path(path: str) -> str:
        """Convert any accepted path representation into the canonical key"""
        return normalize_path(path)

    def get(self, path: str) -> BinaryIO:
        """
        Get file as a local seekable temp file positioned at offset 0

        Args:
            path: Object path

        Returns:
            Temp file opened for reading and writing
        """
        key = self.to_relative_path(path)
        stream = self.get_stream(key)
        return self.materializer.materialize(stream, suffix=posixpath.splitext(key)[1], path=key)

    @abstractmethod
    def get_stream(self, path: str) -> BinaryIO:
        """
        Get file as a stream

        Args:
            path: Object path

        Returns:
            Readable stream, the caller must close it

        Raises:
            ObjectNotFoundError: the object does not exist
            TransferError: the backend or network failed
        """
        pass

    @abstractmethod
    def put(self, path: str, reader: Readable) -> StorageObject:
        """
        Store content under path

        Args:
            path: Object path
            reader: bytes or binary stream

        Returns:
            StorageObject describing the stored item

        Raises:
            TransferError, QuotaError
        """
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        """
        Delete file from storage

        Raises:
            ObjectNotFoundError: provider dependent, some backends tolerate missing keys
            TransferError, NotSupportedError
        """
        pass

    @abstractmethod
    def list(self, path: str = "") -> List[StorageObject]:
        """
        List all objects whose canonical key starts with the prefix

        The prefix is normalized and has no trailing separator; matching is a
        plain string-prefix test. All backend pages are accumulated before
        returning.
        """
        pass

    @abstractmethod
    def get_url(self, path: str) -> str:
        """
        Get a URL usable to fetch the object directly (public or pre-signed)

        Raises:
            TransferError, NotSupportedError
        """
        pass

    @abstractmethod
    def get_endpoint(self) -> str:
        """Get the configured base endpoint, never fails"""
        pass

    def close(self) -> None:
        """Release the adapter-owned client"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _object(
        self,
        key: str,
        last_modified: Optional[datetime] = None,
        size: Optional[int] = None,
        name: str = "",
    ) -> StorageObject:
        return StorageObject(
            path=key,
            name=name,
            last_modified=last_modified,
            size=size or 0,
            storage=self,
        )

    @staticmethod
    def read_all(reader: Readable) -> bytes:
        """Read an upload source into memory, rewinding seekable streams first"""
        if isinstance(reader, (bytes, bytearray)):
            return bytes(reader)
        seekable = getattr(reader, "seekable", None)
        if callable(seekable) and seekable():
            reader.seek(0)
        data = reader.read()
        if isinstance(data, str):
            data = data.encode("utf-8")
        return data

    def _require_key(self, path: str) -> str:
        key = self.to_relative_path(path)
        if not key:
            raise ValueError("path is empty")
        return key
