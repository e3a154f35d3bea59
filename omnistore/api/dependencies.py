"""
API Dependencies

Provides dependency injection for the storage adapter used by the endpoints.
"""

from functools import lru_cache

from omnistore.infrastructure.storage.object_storage import ObjectStorageInterface, StorageFactory


@lru_cache()
def get_storage() -> ObjectStorageInterface:
    """
    Get the storage adapter configured by ``STORAGE_PROVIDER``

    The adapter is created once per process; it owns the provider client
    (and, for Synology, the login session).

    Returns:
        ObjectStorageInterface: Configured storage adapter
    """
    return StorageFactory.get_default_storage()
