"""
Configuration settings for Listings Service
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Listings Browser Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8010

    # Remote search endpoint
    SEARCH_API_URL: str = "http://localhost:8000"
    SEARCH_PATH: str = "/api/whatsapp-listings/search/message"
    SEARCH_TIMEOUT_SECONDS: float = 30.0
    SEARCH_CONNECT_TIMEOUT_SECONDS: float = 5.0

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # Pagination
    BATCH_SIZE: int = 1000  # Records fetched per backend call
    DEFAULT_PAGE_SIZE: int = 200  # Records shown per page
    MAX_PAGE_SIZE: int = 500
    MAX_BATCHES_PER_NAVIGATION: int = 20

    # Client filters
    MAX_BEDROOM_BUCKET: int = 6  # Selecting this value means "6 or more"

    # Browse sessions
    SESSION_TTL_SECONDS: int = 1800  # 30 minutes idle
    MAX_SESSIONS: int = 1000

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
