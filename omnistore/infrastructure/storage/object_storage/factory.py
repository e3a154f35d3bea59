"""
Object Storage Factory

Creates appropriate storage adapters based on configuration.
"""

from typing import Callable, Dict, List, Optional

from omnistore.core.config import settings

from .azure_adapter import AzureBlobAdapter
from .base import ObjectStorageInterface, ProviderConfig
from .casdoor_adapter import CasdoorAdapter
from .filesystem_adapter import FileSystemAdapter
from .gcs_adapter import GoogleCloudAdapter
from .minio_adapter import MinIOAdapter
from .s3_adapter import S3Adapter
from .synology_adapter import SynologyAdapter

# S3-compatible services are served by the MinIO client, R2 by the S3 client
_ADAPTERS: Dict[str, Callable[[ProviderConfig], ObjectStorageInterface]] = {
    "filesystem": FileSystemAdapter,
    "minio": MinIOAdapter,
    "oss": MinIOAdapter,
    "cos": MinIOAdapter,
    "qiniu": MinIOAdapter,
    "s3": S3Adapter,
    "r2": S3Adapter,
    "azureblob": AzureBlobAdapter,
    "googlecloud": GoogleCloudAdapter,
    "synology": SynologyAdapter,
    "casdoor": CasdoorAdapter,
}


class StorageFactory:
    """Factory for creating object storage instances"""

    @staticmethod
    def supported_types() -> List[str]:
        return sorted(_ADAPTERS)

    @staticmethod
    def create_storage(
        storage_type: Optional[str] = None,
        config: Optional[ProviderConfig] = None
    ) -> ObjectStorageInterface:
        """
        Create object storage instance based on type

        Args:
            storage_type: Type of storage ("filesystem", "minio", "s3", "synology", ...),
                defaults to ``settings.STORAGE_PROVIDER``
            config: Optional custom configuration

        Returns:
            ObjectStorageInterface implementation
        """
        storage_type = (storage_type or settings.STORAGE_PROVIDER).lower()
        adapter_class = _ADAPTERS.get(storage_type)
        if adapter_class is None:
            raise ValueError(f"Unsupported storage type: {storage_type}")

        if config is None:
            config = StorageFactory._get_default_config(storage_type)
        return adapter_class(config)

    @staticmethod
    def _get_default_config(storage_type: str) -> ProviderConfig:
        """Get default configuration from settings"""
        common = {
            "acl": settings.STORAGE_ACL,
            "url_expires": settings.STORAGE_URL_EXPIRES,
            "temp_dir": settings.STORAGE_TEMP_DIR,
        }
        if storage_type == "filesystem":
            return ProviderConfig(
                endpoint=settings.FILESYSTEM_ENDPOINT,
                bucket=settings.FILESYSTEM_ROOT,
                **common,
            )
        if storage_type in ("minio", "oss", "cos", "qiniu"):
            return ProviderConfig(
                endpoint=settings.MINIO_ENDPOINT,
                access_id=settings.MINIO_ACCESS_KEY,
                access_key=settings.MINIO_SECRET_KEY,
                secure=settings.MINIO_SECURE,
                bucket=settings.MINIO_BUCKET,
                region=settings.MINIO_REGION,
                **common,
            )
        if storage_type in ("s3", "r2"):
            return ProviderConfig(
                endpoint=settings.S3_ENDPOINT or "",
                access_id=settings.S3_ACCESS_KEY_ID or "",
                access_key=settings.S3_SECRET_ACCESS_KEY or "",
                bucket=settings.S3_BUCKET,
                region=settings.S3_REGION,
                options={"account_id": settings.R2_ACCOUNT_ID},
                **common,
            )
        if storage_type == "azureblob":
            return ProviderConfig(
                endpoint=settings.AZURE_ENDPOINT or "",
                access_id=settings.AZURE_ACCOUNT_NAME,
                access_key=settings.AZURE_ACCOUNT_KEY,
                bucket=settings.AZURE_CONTAINER,
                **common,
            )
        if storage_type == "googlecloud":
            return ProviderConfig(
                endpoint=settings.GCS_ENDPOINT or "",
                bucket=settings.GCS_BUCKET,
                options={
                    "project": settings.GCS_PROJECT,
                    "credentials_file": settings.GCS_CREDENTIALS_FILE,
                    "storage_class": settings.GCS_STORAGE_CLASS,
                },
                **common,
            )
        if storage_type == "synology":
            return ProviderConfig(
                endpoint=settings.SYNOLOGY_ENDPOINT,
                access_id=settings.SYNOLOGY_ACCOUNT,
                access_key=settings.SYNOLOGY_PASSWORD,
                shared_folder=settings.SYNOLOGY_SHARED_FOLDER,
                options={
                    "otp_code": settings.SYNOLOGY_OTP_CODE,
                    "verify_ssl": settings.SYNOLOGY_VERIFY_SSL,
                    "timeout": settings.SYNOLOGY_TIMEOUT,
                },
                **common,
            )
        if storage_type == "casdoor":
            return ProviderConfig(
                endpoint=settings.CASDOOR_ENDPOINT,
                access_id=settings.CASDOOR_CLIENT_ID,
                access_key=settings.CASDOOR_CLIENT_SECRET,
                options={
                    "organization": settings.CASDOOR_ORGANIZATION,
                    "application": settings.CASDOOR_APPLICATION,
                    "provider": settings.CASDOOR_PROVIDER,
                    "timeout": settings.CASDOOR_TIMEOUT,
                },
                **common,
            )
        raise ValueError(f"No default configuration for storage type: {storage_type}")

    @staticmethod
    def get_default_storage() -> ObjectStorageInterface:
        """Get default storage instance (``settings.STORAGE_PROVIDER``)"""
        return StorageFactory.create_storage(settings.STORAGE_PROVIDER)
