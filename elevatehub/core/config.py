# elevatehub/core/config.py
# Application settings (database URL, identity provider keys, business limits)
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str
    DB_ECHO: bool = False
    # Create missing tables on startup (schema is otherwise managed by DDL scripts)
    DB_AUTO_CREATE: bool = True

    # Identity provider: bearer tokens are verified, never issued, by this service
    IDP_JWT_SECRET: str
    IDP_JWT_ALGORITHM: str = "HS256"
    IDP_ISSUER: Optional[str] = None
    IDP_AUDIENCE: Optional[str] = None
    # Lifetime of tokens minted by create_access_token (tests / local tooling)
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # HTTP
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Marketplace rules
    DEFAULT_CURRENCY: str = "KES"
    PLATFORM_FEE_PERCENTAGE: float = 10.0
    MAX_REVISIONS: int = 3
    MESSAGE_MAX_LENGTH: int = 2000
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Where uploaded submission attachments are written
    UPLOAD_DIR: str = "static/uploads/submissions"
    UPLOAD_URL_PREFIX: str = "/static/uploads/submissions/"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
