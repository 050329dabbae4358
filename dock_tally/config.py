"""
Configuration management for the Dock Tally service
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Dock Tally Manifest Service"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Storage
    storage_backend: str = "local"  # local | sql
    local_store_path: str = "./data/dock_tally.json"
    database_url: str = "sqlite:///./data/dock_tally.db"

    # Ingestion / export
    max_upload_mb: int = 20
    export_filename_prefix: str = "export"

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
