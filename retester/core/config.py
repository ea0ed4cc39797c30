"""Core configuration for the realtime contract tester."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tester settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RETESTER_",
        case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # ── Test harness (snapshot / restore / transact) ─────────────────────
    harness_url: str = "http://127.0.0.1:8787"
    transact_path: str = "/transact"
    snapshot_path: str = "/snapshot"
    restore_path: str = "/restore"
    nodes_path: str = "/nodes"
    http_timeout: float = Field(default=30.0, gt=0)

    # ── Deployment ───────────────────────────────────────────────────────
    system_account: str = "eosio"
    deploy_permission: str = "active"

    # ── Watch loop ───────────────────────────────────────────────────────
    poll_interval: float = Field(default=1.0, gt=0)
    node_delay: float = Field(default=1.0, ge=0)
    change_detection: Literal["mtime", "hash"] = "mtime"
    snapshot_label_prefix: str = "realtime-tester"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
