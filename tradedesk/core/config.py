from decimal import Decimal
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "TradeDesk"
    APP_PORT: int = 9210
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database (DATABASE_URI wins over the POSTGRES_* parts)
    DATABASE_URI: Optional[str] = None
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "tradedesk"
    POSTGRES_PORT: int = 5432

    # Orders
    DEFAULT_TAX_RATE: Decimal = Decimal("0")  # e.g. 0.18 = 18%
    DEFAULT_CURRENCY: str = "USD"
    DEFAULT_INCOTERM: str = "FOB"
    NUMBER_GENERATION_ATTEMPTS: int = 10

    # Payments
    PAYMENT_TERMS_DAYS: int = 30
    OVERDUE_CHECK_MINUTES: int = 60
    SCHEDULER_ENABLED: bool = True

    # Webhooks (empty secret = signature check disabled)
    CARRIER_WEBHOOK_SECRET: str = ""
    PAYMENT_WEBHOOK_SECRET: str = ""

    # Notifications
    NOTIFY_SUBSCRIBER_URLS: str = ""  # comma separated
    NOTIFY_TIMEOUT_SECONDS: float = 5.0

    @property
    def subscriber_urls(self) -> List[str]:
        return [u.strip() for u in self.NOTIFY_SUBSCRIBER_URLS.split(",") if u.strip()]

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URI:
            return self.DATABASE_URI
        return f"postgresql+psycopg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
