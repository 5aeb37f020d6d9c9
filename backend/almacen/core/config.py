from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Almacen"
    environment: str = "development"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    secret_key: str = "change-this-secret-key"
    access_token_expire_minutes: int = 60

    database_url: str = "postgresql+psycopg2://almacen:almacen@db:5432/almacen"
    cors_origins: str = "http://localhost:3000"

    low_stock_threshold: int = 5
    recent_products_limit: int = 5
    stock_retry_attempts: int = 3
    stock_retry_backoff: float = 0.05

    bootstrap_admin_email: str = "admin@almacen.local"
    bootstrap_admin_password: str = "Admin123!"
    bootstrap_admin_name: str = "Administrador"

    storage_url: str = ""
    storage_api_key: str = ""
    product_images_bucket: str = "product-images"
    profile_images_bucket: str = "profile-images"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
