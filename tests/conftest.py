import os

import pytest

# settings are read at import time
os.environ.setdefault("STORAGE_PROVIDER", "filesystem")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from omnistore.infrastructure.storage.object_storage import FileSystemAdapter, ProviderConfig  # noqa: E402


@pytest.fixture
def temp_dir(tmp_path):
    path = tmp_path / "materialized"
    path.mkdir()
    return str(path)


@pytest.fixture
def fs_storage(tmp_path, temp_dir):
    config = ProviderConfig(endpoint="/", bucket=str(tmp_path / "root"), temp_dir=temp_dir)
    with FileSystemAdapter(config) as storage:
        yield storage
