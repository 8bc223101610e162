# hike/core/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

DEFAULT_EVENT_ID = "401671889"


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _number(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _origins(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name) or "*"
    return tuple(o.strip().rstrip("/") for o in raw.split(",") if o.strip()) or ("*",)


@dataclass(frozen=True)
class Settings:
    event_id: str = DEFAULT_EVENT_ID
    analysis_model: str = "gemini-3-pro-preview"
    video_model: str = "veo-3.1-fast-generate-preview"
    media_provider: str = "veo"  # veo | heygen
    media_poll_interval: float = 10.0
    media_max_attempts: int = 60
    placeholder_on_feed_failure: bool = False
    grounding: bool = True
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = ("*",)


def load_settings() -> Settings:
    """Read settings from the process environment."""
    return Settings(
        event_id=os.getenv("ESPN_EVENT_ID") or DEFAULT_EVENT_ID,
        analysis_model=os.getenv("HIKE_ANALYSIS_MODEL", "gemini-3-pro-preview"),
        video_model=os.getenv("HIKE_VIDEO_MODEL", "veo-3.1-fast-generate-preview"),
        media_provider=(os.getenv("HIKE_MEDIA_PROVIDER") or "veo").strip().lower(),
        media_poll_interval=_number("HIKE_MEDIA_POLL_INTERVAL", 10.0),
        media_max_attempts=max(1, int(_number("HIKE_MEDIA_MAX_ATTEMPTS", 60))),
        placeholder_on_feed_failure=_flag("HIKE_PLACEHOLDER_ON_FEED_FAILURE", False),
        grounding=_flag("HIKE_GROUNDING", True),
        log_level=(os.getenv("HIKE_LOG_LEVEL") or "INFO").upper(),
        cors_origins=_origins("HIKE_CORS_ORIGINS"),
    )
