"""
集中式配置（环境变量/ .env），保障可测性与可控性。
"""
# @file purpose: Centralized settings using Pydantic Settings.

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AW_", env_file=".env", extra="ignore")

    # driver process
    driver_path: str = "autowait-driver"
    driver_args: list[str] = ["run-driver"]
    headless: bool = True

    # timing (milliseconds)
    default_timeout_ms: float = Field(default=30_000, ge=0)
    navigation_timeout_ms: float | None = Field(default=None, ge=0)
    poll_interval_ms: float = Field(default=100, gt=0)
    settle_timeout_ms: float = Field(default=5_000, ge=0)
    expect_timeout_ms: float = Field(default=5_000, ge=0)

    # diagnostics
    debug_protocol: bool = False
    log_level: str = "INFO"


settings = Settings()
