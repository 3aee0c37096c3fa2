import os
from dataclasses import dataclass


def _get_bool(env_name: str, default: bool = False) -> bool:
    val = os.getenv(env_name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass
class Settings:
    # App
    APP_HOST: str = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))
    INSTANCE_ID: str = os.getenv("INSTANCE_ID", "unknown")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database (SQLite by default in a Docker volume)
    DB_URL: str = os.getenv("DB_URL", "sqlite+aiosqlite:////data/storefront.db")

    # Redis (live update channels)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "redis")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_USERNAME: str = os.getenv("REDIS_USERNAME", "")
    REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
    REDIS_SSL: bool = _get_bool("REDIS_SSL", False)
    REDIS_SSL_VERIFY: bool = _get_bool("REDIS_SSL_VERIFY", False)
    ORDER_CHANNEL_PREFIX: str = os.getenv("ORDER_CHANNEL_PREFIX", "orders")
    NOTIFICATION_CHANNEL_PREFIX: str = os.getenv("NOTIFICATION_CHANNEL_PREFIX", "notifications")

    # Kafka
    KAFKA_ENABLED: bool = _get_bool("KAFKA_ENABLED", True)
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9092")
    ORDER_PLACED_TOPIC: str = os.getenv("ORDER_PLACED_TOPIC", "order-placed")
    PAYMENTS_GROUP_ID: str = os.getenv("PAYMENTS_GROUP_ID", "payments-worker")
    KAFKA_CONNECT_ATTEMPTS: int = int(os.getenv("KAFKA_CONNECT_ATTEMPTS", "8"))

    # Simulated payments
    PAYMENTS_WORKER_ENABLED: bool = _get_bool("PAYMENTS_WORKER_ENABLED", True)
    PAYMENT_DELAY_SECONDS: float = float(os.getenv("PAYMENT_DELAY_SECONDS", "2.0"))
    CURRENCY: str = os.getenv("CURRENCY", "ETB")

    # Seeded administrator (identity provider user id)
    ADMIN_USER_ID: str = os.getenv("ADMIN_USER_ID", "")
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "")
    ADMIN_NAME: str = os.getenv("ADMIN_NAME", "Administrator")


settings = Settings()
