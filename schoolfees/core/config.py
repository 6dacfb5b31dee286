from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from schoolfees.core.enums import FeeStatus


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    # Seconds before a pooled connection is replaced; hosted Postgres drops idle ones.
    db_pool_recycle: int = Field(300, ge=1, alias="DB_POOL_RECYCLE")

    # Tokens are issued by the external auth provider; we only verify them.
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    jwt_audience: Optional[str] = Field("authenticated", alias="JWT_AUDIENCE")

    fee_balance_concurrency: int = Field(10, ge=1, alias="FEE_BALANCE_CONCURRENCY")
    # Status reported when no fee is configured and nothing was paid.
    zero_fee_status: FeeStatus = Field(FeeStatus.paid, alias="ZERO_FEE_STATUS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
