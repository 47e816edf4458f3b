from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide settings, read from ``FLEETMON_*`` environment variables.

    The inactivity thresholds here are the only ones used anywhere in the
    system: check-in freshness, the periodic sweep, the recompute script and
    the listing online flag all read them from this object.
    """

    database_url: str = "sqlite:///./fleetmon.db"

    offline_threshold_minutes: int = 60
    unmonitored_threshold_days: int = 5
    online_window_minutes: int = 5
    totem_online_window_minutes: int = 2

    sweep_enabled: bool = True
    sweep_interval_seconds: float = 300.0

    location_history_limit: int = 20
    access_point_table: str = "config/access_points.json"

    log_dir: str = "logs"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="FLEETMON_", env_file=".env", extra="ignore")

    @property
    def offline_threshold(self) -> timedelta:
        return timedelta(minutes=self.offline_threshold_minutes)

    @property
    def unmonitored_threshold(self) -> timedelta:
        return timedelta(days=self.unmonitored_threshold_days)

    @property
    def online_window(self) -> timedelta:
        return timedelta(minutes=self.online_window_minutes)

    @property
    def totem_online_window(self) -> timedelta:
        return timedelta(minutes=self.totem_online_window_minutes)


@lru_cache
def get_settings() -> Settings:
    return Settings()
