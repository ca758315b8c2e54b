from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from decimal import Decimal
from pydantic import field_validator

class Settings(BaseSettings):
    # Relational store (operational projection)
    POSTGRES_USER: str = 'inventa_user'
    POSTGRES_PASSWORD: str = 'inventa_pass'
    POSTGRES_DB: str = 'inventa_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    DB_STATEMENT_TIMEOUT_MS: int = 15000

    # Document store (company/store master records)
    MONGODB_URI: str = 'mongodb://mongo:27017/?replicaSet=rs0'
    MONGODB_DB: Optional[str] = None
    MONGODB_TIMEOUT_MS: int = 10000

    # Redis settings
    REDIS_HOST: str = 'redis'
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    # Identity provider tokens
    IDP_JWT_SECRET: str = 'change-me-identity-provider-shared-secret'
    IDP_JWT_ALGORITHM: str = 'HS256'
    IDP_JWT_AUDIENCE: Optional[str] = None
    IDP_JWT_ISSUER: Optional[str] = None

    # Business rules
    TAX_RATE: Decimal = Decimal("0.19")
    CURRENCY: str = "COP"
    SECURITY_CODE_LENGTH: int = 8
    JOIN_REQUEST_COOLDOWN_HOURS: int = 24
    DEFAULT_STORE_NAME: str = "Tienda Principal"
    SALE_RETRY_ATTEMPTS: int = 3

    # Default plan assigned on provisioning
    DEFAULT_PLAN_CODE: str = "free"
    DEFAULT_PLAN_NAME: str = "Gratis"
    DEFAULT_PLAN_WORKER_LIMIT: int = 10
    DEFAULT_PLAN_INVOICE_LIMIT: int = 1000
    DEFAULT_PLAN_STORE_LIMIT: int = 3

    # Notifications
    NOTIFICATIONS_ASYNC: bool = False

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    FRONTEND_URL: str = 'http://localhost:3000'

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("NOTIFICATIONS_ASYNC", mode="before")
    @classmethod
    def parse_notifications_async(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("MONGODB_DB", mode="before")
    @classmethod
    def parse_mongodb_db(cls, v):
        # An empty env var means "not configured"
        if isinstance(v, str) and not v.strip():
            return None
        return v

settings = Settings()
