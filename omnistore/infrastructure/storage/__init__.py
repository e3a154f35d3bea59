"""
Storage Infrastructure Module

Provides the provider-independent object storage layer.
"""

from . import object_storage
from .object_storage import ObjectStorageInterface, StorageFactory, StorageObject

__all__ = [
    'ObjectStorageInterface',
    'StorageFactory',
    'StorageObject',
    'object_storage'
]
