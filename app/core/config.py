from pydantic_settings import BaseSettings
from typing import List, Optional, Union
from pydantic import field_validator
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # API Settings
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "Suittrip API"

    # Database Settings
    POSTGRES_USER: str = "user"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "suittrip"

    # Full URL override (takes precedence over the POSTGRES_* parts)
    DATABASE_URL_OVERRIDE: Optional[str] = None

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Redis Settings (shared rate limit counters)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # Email verification
    EMAIL_VERIFICATION_CODE_LENGTH: int = 6
    EMAIL_VERIFICATION_CODE_EXPIRES_IN: int = 180  # seconds
    EMAIL_VERIFICATION_MAX_ATTEMPTS: int = 5

    # Rate limiting for send-verification
    EMAIL_VERIFICATION_RATE_LIMIT_WINDOW: int = 60  # seconds
    EMAIL_VERIFICATION_RATE_LIMIT_MAX: int = 1
    RATE_LIMIT_BACKEND: str = "memory"  # "memory" or "redis"
    RATE_LIMIT_MAX_KEYS: int = 10000
    DISABLE_RATE_LIMIT: bool = False

    # AWS SES Settings
    AWS_REGION: str = "ap-northeast-2"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_SES_FROM_EMAIL: str = "noreply@suittrip.com"
    AWS_SES_FROM_NAME: str = "Suittrip"

    # Logging
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # CORS Settings - can be set as JSON string in .env
    BACKEND_CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000", "http://localhost:8000"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Union[List[str], str]) -> List[str]:
        """Parse CORS origins from JSON string or list"""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # If not valid JSON, split by comma
                return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("RATE_LIMIT_BACKEND")
    @classmethod
    def validate_rate_limit_backend(cls, v: str) -> str:
        """Only the in-process map and Redis are supported"""
        v = v.lower()
        if v not in ("memory", "redis"):
            raise ValueError("RATE_LIMIT_BACKEND must be 'memory' or 'redis'")
        return v

    @field_validator("EMAIL_VERIFICATION_CODE_LENGTH")
    @classmethod
    def validate_code_length(cls, v: int) -> int:
        """Codes must fit email_verifications.code (String(10))"""
        if not 1 <= v <= 10:
            raise ValueError("EMAIL_VERIFICATION_CODE_LENGTH must be between 1 and 10")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
