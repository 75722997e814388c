from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import Environment


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "usage-billing"
    api_version: str = "v1"
    debug: bool = False

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "billing"
    db_use_nullpool: bool = (
        False  # True for workers (sequential), False for API (concurrent)
    )
    db_pool_size: int = 10
    db_pool_overflow: int = 5

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # RabbitMQ
    rabbitmq_host: str = "localhost"
    rabbitmq_port: int = 5672
    rabbitmq_username: str = "guest"
    rabbitmq_password: str = "guest"
    rabbitmq_vhost: str = ""

    # Worker Concurrency Settings
    billing_worker_prefetch_count: int = 5

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @property
    def redis_connection_url(self) -> str:
        """Construct Redis URL from components."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        else:
            return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # OpenTelemetry
    otel_service_name: str = "usage-billing"
    otel_service_version: str = "0.1.0"

    # Axiom (export disabled when no token is configured)
    axiom_token: Optional[str] = None
    axiom_dataset: str = "usage-billing"

    # Billing
    billing_enabled: bool = True  # operational kill switch for every billing endpoint
    billing_default_currency: str = "usd"
    # Payment sync jobs for one invoice are serialized through a distributed lock
    billing_payment_lock_ttl_seconds: int = 30
    billing_payment_lock_acquire_timeout_seconds: float = 10.0

    @property
    def cors_allowed_origins(self) -> list[str]:
        """Auto-select CORS origins based on environment."""
        if self.environment == Environment.LOCAL:
            return [
                "http://localhost:3000",
                "http://localhost:3001",
            ]
        return []


settings = Settings()
