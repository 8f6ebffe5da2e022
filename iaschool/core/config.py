# iaschool/core/config.py
"""Application configuration using Pydantic."""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    database_url: str
    redis_url: str
    jwt_secret_key: str

    jwt_algorithm: str = 'HS256'
    access_token_expire_minutes: int = 60 * 24

    app_name: str = 'iaschool'
    app_version: str = '1.0.0'
    environment: str = 'development'
    log_level: str = 'info'
    allowed_origins: List[str] = ['*']

    cache_enabled: bool = True
    cache_ttl: int = 300

    # Login protection
    max_failed_login_attempts: int = 5
    lock_duration_minutes: int = 30
    login_rate_limit: int = 5
    login_rate_window: int = 60

    model_config = {
        'env_file': '.env',
        'extra': 'ignore'
    }


class GalleryAISettings(BaseSettings):
    API_URL: str = "https://api.openai.com/v1/chat/completions"
    API_KEY: Optional[str] = None
    MODEL: str = "gpt-4o-mini"
    TIMEOUT: int = 60
    MAX_TOKENS: int = 1500
    MAX_REFERENCE_STUDENTS: int = 30

    model_config = {
        'env_prefix': 'GALLERY_AI_',
        'env_file': '.env',
        'extra': 'ignore'
    }


class StorageSettings(BaseSettings):
    BUCKET: str = "iaschool-uploads"
    REGION: str = "us-east-1"
    ACCESS_KEY_ID: Optional[str] = None
    SECRET_ACCESS_KEY: Optional[str] = None
    ENDPOINT_URL: Optional[str] = None
    PUBLIC_BASE_URL: Optional[str] = None
    PRESIGN_EXPIRES: int = 3600  # seconds

    model_config = {
        'env_prefix': 'S3_',
        'env_file': '.env',
        'extra': 'ignore'
    }


class NotificationSettings(BaseSettings):
    API_URL: Optional[str] = None
    API_KEY: Optional[str] = None
    SENDER_EMAIL: str = "no-reply@iaschool.mx"
    SENDER_NAME: str = "IA School"
    TIMEOUT: int = 15

    model_config = {
        'env_prefix': 'NOTIFICATION_',
        'env_file': '.env',
        'extra': 'ignore'
    }


settings = Settings()
gallery_ai_settings = GalleryAISettings()
storage_settings = StorageSettings()
notification_settings = NotificationSettings()
