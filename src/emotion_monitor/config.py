"""Centralised application settings loaded from environment / .env file."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """All runtime configuration for the emotion monitor.

    Values are read from environment variables first, then from a *.env*
    file located at the project root.  Variable names match the field
    names (case-insensitive), e.g. ``FACEPP_API_KEY``.
    """

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Emotion classifier (Face++) ───────────────────────────
    facepp_api_key: str = ""
    facepp_api_secret: str = ""
    facepp_api_url: str = "https://api-us.faceplusplus.com/facepp/v3/detect"
    facepp_focus_threshold: float = 80.0  # neutral score reported as "focused"
    classifier_timeout_seconds: float = 10.0

    # ── Camera ────────────────────────────────────────────────
    camera_index: int = 0
    camera_width: int = 640
    camera_height: int = 480
    camera_facing: Literal["user", "environment"] = "user"
    capture_jpeg_quality: int = 80

    # ── Sampling loop ─────────────────────────────────────────
    capture_min_interval_ms: int = 1000
    countdown_period_ticks: int = 3
    tick_interval_seconds: float = 1.0
    first_capture_delay_seconds: float = 1.0
    history_size: int = 12
    popup_dismiss_seconds: float = 8.0
    safety_net_seconds: float = 15.0  # 0 disables the forced-update safety net

    # ── API server ────────────────────────────────────────────
    api_host: str = "127.0.0.1"
    api_port: int = int(os.getenv("PORT", "8000"))

    # ── Notifications ─────────────────────────────────────────
    webhook_url: str = ""
    webhook_timeout_seconds: float = 10.0
    notification_buffer_size: int = 50

    # ── Logging ───────────────────────────────────────────────
    monitor_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
