"""Configuration system using pydantic-settings with environment variable loading.

Durations on the cache surface are expressed in milliseconds so they can be
tuned with the same numbers the mobile client uses (staleTime, gcTime).
"""

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Rates backend connection settings."""

    model_config = SettingsConfigDict(env_prefix="API_")

    base_url: str = "https://api.vtrading.app"
    api_key: SecretStr = SecretStr("")
    timeout_seconds: float = 10.0


class CacheSettings(BaseSettings):
    """Cache lifecycle and retry policy parameters."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    stale_time_ms: int = 300_000  # 5 minutes fresh
    gc_time_ms: int = 1_800_000  # evicted after 30 minutes
    retry_max: int = 3  # reads
    mutation_retry_max: int = 1  # writes are not retried
    retry_base_delay_ms: int = 1_000
    retry_cap_delay_ms: int = 30_000
    retry_jitter: bool = False
    refetch_on_reconnect: bool = True
    refetch_on_mount: bool = False
    sweep_interval_seconds: float = 60.0

    @model_validator(mode="after")
    def _check_windows(self) -> "CacheSettings":
        if self.gc_time_ms < self.stale_time_ms:
            raise ValueError("gc_time_ms must be >= stale_time_ms")
        if self.retry_cap_delay_ms < self.retry_base_delay_ms:
            raise ValueError("retry_cap_delay_ms must be >= retry_base_delay_ms")
        return self

    @property
    def stale_after(self) -> float:
        """Freshness window in seconds."""
        return self.stale_time_ms / 1000

    @property
    def evict_after(self) -> float:
        """Eviction window in seconds."""
        return self.gc_time_ms / 1000


class ServerSettings(BaseSettings):
    """JSON API server configuration."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = "0.0.0.0"
    port: int = 8080


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"
    api: ApiSettings = ApiSettings()
    cache: CacheSettings = CacheSettings()
    server: ServerSettings = ServerSettings()
