import os
from typing import List, Optional, Union
import json

from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from pydantic import field_validator

project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
env_path = os.path.join(project_root, '.env')
load_dotenv(env_path)


class Settings(BaseSettings):
    # 基本设置
    API_V1_STR: str = "/api"
    PROJECT_NAME: str = "OmniStore"
    LOG_LEVEL: str = "INFO"

    # CORS 设置
    CORS_ORIGINS: List[str] = ["*"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str):
            # 优先按JSON数组解析，失败后按逗号分隔
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return v
        return []

    # 存储通用配置
    STORAGE_PROVIDER: str = "filesystem"  # 支持: filesystem, minio, s3, azureblob, googlecloud, synology, casdoor
    STORAGE_TEMP_DIR: Optional[str] = None  # get() 落盘的临时目录，默认使用系统临时目录
    STORAGE_URL_EXPIRES: int = 3600  # 预签名URL有效期(秒)
    STORAGE_ACL: str = "private"  # private / public-read

    # 本地文件系统
    FILESYSTEM_ROOT: str = "storage"
    FILESYSTEM_ENDPOINT: str = "/"

    # MinIO / S3 兼容存储
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ACCESS_KEY: str = "minioadmin"
    MINIO_SECRET_KEY: str = "minioadmin"
    MINIO_SECURE: bool = False
    MINIO_BUCKET: str = "omnistore"
    MINIO_REGION: Optional[str] = None

    # AWS S3 / Cloudflare R2
    S3_ENDPOINT: Optional[str] = None
    S3_ACCESS_KEY_ID: Optional[str] = None
    S3_SECRET_ACCESS_KEY: Optional[str] = None
    S3_BUCKET: str = "omnistore"
    S3_REGION: Optional[str] = None
    R2_ACCOUNT_ID: Optional[str] = None

    # Azure Blob
    AZURE_ACCOUNT_NAME: str = ""
    AZURE_ACCOUNT_KEY: str = ""
    AZURE_CONTAINER: str = "omnistore"
    AZURE_ENDPOINT: Optional[str] = None

    # Google Cloud Storage
    GCS_BUCKET: str = "omnistore"
    GCS_PROJECT: Optional[str] = None
    GCS_CREDENTIALS_FILE: Optional[str] = None
    GCS_STORAGE_CLASS: Optional[str] = None
    GCS_ENDPOINT: Optional[str] = None

    # Synology NAS (FileStation)
    SYNOLOGY_ENDPOINT: str = "http://localhost:5000"
    SYNOLOGY_ACCOUNT: str = ""
    SYNOLOGY_PASSWORD: str = ""
    SYNOLOGY_SHARED_FOLDER: str = ""
    SYNOLOGY_OTP_CODE: Optional[str] = None
    SYNOLOGY_VERIFY_SSL: bool = True
    SYNOLOGY_TIMEOUT: int = 60

    # Casdoor 资源托管
    CASDOOR_ENDPOINT: str = "http://localhost:8000"
    CASDOOR_CLIENT_ID: str = ""
    CASDOOR_CLIENT_SECRET: str = ""
    CASDOOR_ORGANIZATION: str = "built-in"
    CASDOOR_APPLICATION: str = "app-built-in"
    CASDOOR_PROVIDER: str = ""
    CASDOOR_TIMEOUT: int = 60

    # 服务器启动配置
    HOST: str = "0.0.0.0"
    PORT: int = 8092
    RELOAD: bool = False

    class Config:
        case_sensitive = True
        env_file = ".env"


# 创建设置实例
settings = Settings()
