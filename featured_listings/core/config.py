from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = Field(default="Featured Listings", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    database_url: str = Field(default="sqlite:///./featured.db", alias="DATABASE_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    site_url: str = Field(default="https://sghalaldirectory.com", alias="SITE_URL")
    currency: str = Field(default="sgd", alias="CURRENCY")
    stripe_secret_key: str = Field(default="", alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: str = Field(default="", alias="STRIPE_WEBHOOK_SECRET")
    stripe_webhook_tolerance: int = Field(default=300, alias="STRIPE_WEBHOOK_TOLERANCE")
    checkout_timeout_seconds: float = Field(default=8.0, alias="CHECKOUT_TIMEOUT_SECONDS")
    backlink_timeout_seconds: float = Field(default=10.0, alias="BACKLINK_TIMEOUT_SECONDS")

    class Config:
        env_file = ".env"


settings = Settings()
