"""
Centralized configuration using Pydantic Settings.
Loads from environment variables and .env file.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    """
    Application settings with environment variable support.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Application
    APP_NAME: str = "nfe-excel-export"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    
    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_MAX_UPLOAD_SIZE_MB: int = 10
    API_MAX_FILES: int = 50
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s [%(levelname)s] %(message)s"
    
    # Export
    EXPORT_SHEET_NAME: str = "Notas Fiscais"
    EXPORT_FILENAME_PREFIX: str = "notas_fiscais"
    DEFAULT_TEMPLATE_SIZE: int = 19
    UNKNOWN_COLUMN_POLICY: Literal["drop", "reject"] = "drop"
    
    # Security
    ALLOWED_EXTENSIONS: list[str] = [".xml"]
    
    @property
    def max_upload_size_bytes(self) -> int:
        """Convert MB to bytes."""
        return self.API_MAX_UPLOAD_SIZE_MB * 1024 * 1024


# Global settings instance
settings = Settings()
