"""
Configuration for the Civic Connect API
=======================================

Environment variables (case-insensitive, `.env` supported):
- MONGO_URL: MongoDB connection string (default: mongodb://localhost:27017)
- DATABASE_NAME: database to use (default: CivicConnect)
- JWT_SECRET: signing key for session tokens
- JWT_EXPIRE_MINUTES: token lifetime (default: 1440, i.e. 24h)
- BCRYPT_ROUNDS: bcrypt cost factor (default: 12)
- UPLOAD_DIR: where issue images are written (default: ./uploads)
- CORS_ORIGINS: JSON list of allowed origins
- HOST / PORT / RELOAD: where `run.py` serves the app (default: 0.0.0.0:3001)
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables"""

    app_name: str = "Civic Connect API"

    # Database
    mongo_url: str = "mongodb://localhost:27017"
    database_name: str = "CivicConnect"

    # Tokens
    jwt_secret: str = "dev-secret-change"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24

    # Password hashing
    bcrypt_rounds: int = 12

    # Uploads
    upload_dir: str = "uploads"
    max_upload_files: int = 5
    max_upload_bytes: int = 5 * 1024 * 1024

    # Listing
    default_page_size: int = 10
    max_page_size: int = 100

    # Server
    host: str = "0.0.0.0"
    port: int = 3001
    reload: bool = False

    cors_origins: List[str] = ["http://localhost:5173"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def validate_security_config(self) -> List[str]:
        """Return warnings about insecure settings"""
        warnings = []
        if self.jwt_secret == "dev-secret-change":
            warnings.append("JWT_SECRET not set, using the development default")
        if self.bcrypt_rounds < 10:
            warnings.append(f"BCRYPT_ROUNDS={self.bcrypt_rounds} is below the recommended cost of 12")
        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
