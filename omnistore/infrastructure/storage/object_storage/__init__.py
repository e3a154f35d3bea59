"""
Object Storage Infrastructure Module

Provides abstracted object storage interfaces supporting multiple cloud providers.
"""

from .base import ObjectStorageInterface, ProviderConfig, StorageObject
from .factory import StorageFactory
from .filesystem_adapter import FileSystemAdapter
from .materializer import StreamMaterializer
from .path_normalizer import normalize_path
from .synology_session import SessionState, SynologySessionManager

__all__ = [
    'ObjectStorageInterface',
    'ProviderConfig',
    'StorageObject',
    'StorageFactory',
    'FileSystemAdapter',
    'StreamMaterializer',
    'normalize_path',
    'SessionState',
    'SynologySessionManager',
]
