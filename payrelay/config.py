from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    database_url: str = "postgresql+psycopg://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"

    jwt_secret: str = "dev-secret-change-me"
    jwt_issuer: str = "payrelay-api"
    jwt_audience: str = "payrelay-api"
    jwt_expires_minutes: int = 60

    MERCADO_PAGO_ACCESS_TOKEN: str | None = None
    payment_api_base_url: str = "https://api.mercadopago.com"
    premium_title: str = "Premium plan"
    premium_price: float = 39.0
    premium_currency: str = "BRL"

    # outbound relay
    relay_max_attempts: int = 3
    relay_backoff_base_ms: int = 1000
    relay_body_limit: int = 1000
    relay_timeout_seconds: float | None = None

    log_level: str = "INFO"
    log_json: bool = True

    # rate limiting (redis)
    rate_limit_enabled: bool = True
    rate_limit_webhooks_per_min: int = 60
    rate_limit_webhook_tests_per_min: int = 10

settings = Settings()

REQUIRED_KEYS = ("MERCADO_PAGO_ACCESS_TOKEN", "database_url")

def missing_required(s: Settings) -> list[str]:
    return [key for key in REQUIRED_KEYS if not getattr(s, key, None)]
