from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

FIREBASE_JWKS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/"
    "securetoken@system.gserviceaccount.com"
)


class Settings(BaseSettings):
    FIREBASE_PROJECT_ID: str = ""
    FIREBASE_CREDENTIALS_FILE: str | None = None
    FIREBASE_WEB_API_KEY: str = ""
    FIREBASE_AUTH_URL: str = "https://identitytoolkit.googleapis.com/v1"
    FIREBASE_AUTH_TIMEOUT: float = 10.0

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "jwks"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str = FIREBASE_JWKS_URL

    CORS_ORIGINS: list[str] = ["*"]

    WS_HEARTBEAT_SECONDS: int = 30

    LOCAL_CACHE_PATH: str = ".social_sync_cache.json"

    POST_CHUNK_SIZE: int = 900_000
    IMAGE_LIMIT_BYTES: int = 950_000
    POST_IMAGE_MAX_PIXEL: int = 2048
    PROFILE_IMAGE_MAX_PIXEL: int = 1024

    USERS_IN_QUERY_LIMIT: int = 10
    FRIEND_CODE_LENGTH: int = 8
    FRIEND_CODE_ATTEMPTS: int = 5

    LOG_LEVEL: str = "INFO"

    @property
    def firebase_issuer(self) -> str:
        return f"https://securetoken.google.com/{self.FIREBASE_PROJECT_ID}"

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
