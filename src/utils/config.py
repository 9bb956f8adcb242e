import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_GATEWAY_URL = "http://localhost:9000/api"
DEFAULT_DB_PATH = "data/storefront.sqlite"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings, read once from the environment at startup.
    """

    gateway_url: str = DEFAULT_GATEWAY_URL
    request_timeout: float = 10.0
    db_path: str = DEFAULT_DB_PATH
    notify_timeout: float = 3.5
    expiry_check_interval: float = 1.0
    log_level: str = "INFO"
    log_file: Optional[str] = None


def load_settings() -> Settings:
    return Settings(
        gateway_url=os.getenv("STOREFRONT_GATEWAY_URL", DEFAULT_GATEWAY_URL).rstrip("/"),
        request_timeout=_env_float("STOREFRONT_TIMEOUT", 10.0),
        db_path=os.getenv("STOREFRONT_DB_PATH", DEFAULT_DB_PATH),
        notify_timeout=_env_float("STOREFRONT_NOTIFY_TIMEOUT", 3.5),
        expiry_check_interval=_env_float("STOREFRONT_EXPIRY_CHECK", 1.0),
        log_level=os.getenv("STOREFRONT_LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("STOREFRONT_LOG_FILE") or None,
    )
