"""
API configuration and settings management.
"""
import os

from carscout.config import settings


class Config:
    """Application configuration."""

    # API settings
    API_TITLE: str = "CarScout API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Aggregated, matched and ranked used-car listings from several marketplaces"

    # CORS settings
    CORS_ORIGINS: list = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    EXPORT_FILENAME: str = "carscout_results.csv"

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE: str = os.getenv("API_LOG_FILE", "api.log")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration on startup."""
        if cls.LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {cls.LOG_LEVEL}")
        settings.validate()


# Global config instance
config = Config()
