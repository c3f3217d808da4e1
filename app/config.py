# app/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./parking.db"

    # ── Network ───────────────────────────────────────────────────────────
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 3001

    # ── MQTT Broker ───────────────────────────────────────────────────────
    MQTT_ENABLED: bool = True
    MQTT_BROKER_HOST: str = "localhost"
    MQTT_BROKER_PORT: int = 1883
    MQTT_USER: Optional[str] = None
    MQTT_PASSWORD: Optional[str] = None
    MQTT_USE_TLS: bool = False       # HiveMQ Cloud: port 8883 + TLS
    MQTT_CLIENT_ID: str = "parking-reconciler"
    MQTT_TOPIC_PREFIX: str = "estacionamiento"

    # ── Facility ──────────────────────────────────────────────────────────
    SPOT_COUNT: int = 3

    @property
    def SPOT_IDS(self) -> list:
        return list(range(1, self.SPOT_COUNT + 1))

    # ── Tariff (used only when the DB holds no tariff yet) ───────────────
    DEFAULT_RATE_BASE: float = 5.00       # first hour, flat
    DEFAULT_RATE_MINUTE: float = 0.10     # every minute after the first hour

    # ── Reconciliation thresholds ─────────────────────────────────────────
    MIN_DWELL_SECONDS: float = 5.0        # spot-freed earlier than this after entry is sensor noise
    DEDUP_WINDOW_SECONDS: float = 0.0     # 0 disables time-window debounce (exact repeats still dropped)

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None         # default: <repo>/logs

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
