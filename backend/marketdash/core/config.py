from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    app_name: str = "Marketplace Admin API"
    api_prefix: str = "/v1"
    mongodb_uri: str = "mongodb://localhost:27017/marketplace"
    redis_url: str = "redis://localhost:6379/0"
    enable_external_services: bool = False
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    log_level: str = "INFO"

    # 5s matches the order screen, 60s the lighter-weight dashboard refresh.
    order_poll_interval_seconds: float = 5.0
    order_fetch_timeout_seconds: float = 10.0
    enable_order_poller: bool = True
    notification_feed_limit: int = 50
    store_cache_ttl_seconds: int = 3600

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        defaults = cls()
        return cls(
            app_name=os.getenv("APP_NAME", defaults.app_name),
            api_prefix=os.getenv("API_PREFIX", defaults.api_prefix),
            mongodb_uri=os.getenv("MONGODB_URI", defaults.mongodb_uri),
            redis_url=os.getenv("REDIS_URL", defaults.redis_url),
            enable_external_services=_env_bool("ENABLE_EXTERNAL_SERVICES", defaults.enable_external_services),
            cors_origins=os.getenv("CORS_ORIGINS", defaults.cors_origins),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            order_poll_interval_seconds=max(
                0.1, _env_float("ORDER_POLL_INTERVAL_SECONDS", defaults.order_poll_interval_seconds)
            ),
            order_fetch_timeout_seconds=max(
                0.1, _env_float("ORDER_FETCH_TIMEOUT_SECONDS", defaults.order_fetch_timeout_seconds)
            ),
            enable_order_poller=_env_bool("ENABLE_ORDER_POLLER", defaults.enable_order_poller),
            notification_feed_limit=max(
                1, min(_env_int("NOTIFICATION_FEED_LIMIT", defaults.notification_feed_limit), 50)
            ),
            store_cache_ttl_seconds=max(1, _env_int("STORE_CACHE_TTL_SECONDS", defaults.store_cache_ttl_seconds)),
        )
