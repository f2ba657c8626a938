from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Backends: "firebase" or "memory" for identity, "mongo", "firestore" or "memory" for documents
    IDENTITY_BACKEND: str = "firebase"
    DOCUMENT_BACKEND: str = "mongo"

    # Firebase Configuration
    FIREBASE_API_KEY: Optional[str] = None
    FIREBASE_AUTH_EMULATOR_HOST: Optional[str] = None  # e.g. "localhost:9099"
    FIREBASE_CREDENTIALS_JSON: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: str = "firebase-credentials.json"
    GOOGLE_OAUTH_REQUEST_URI: str = "http://localhost"

    # MongoDB Configuration
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "content_studio"

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Content Studio"
    LOG_LEVEL: str = "INFO"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Frontend Configuration
    FRONTEND_URL: str = "http://localhost:3000"

    # Stripe Configuration
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_PRO_MONTHLY_PRICE_ID: str = "price_pro_monthly"
    STRIPE_ENTERPRISE_MONTHLY_PRICE_ID: str = "price_enterprise_monthly"
    STRIPE_PRO_YEARLY_PRICE_ID: str = "price_pro_yearly"
    STRIPE_ENTERPRISE_YEARLY_PRICE_ID: str = "price_enterprise_yearly"

    # Testing Configuration
    TEST_MODE: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra env variables


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
