from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class MirrorMode(str, Enum):
    """How embedded asset URLs are rewritten when mirroring is enabled."""

    FILTERED = "filtered"  # same-origin assets only, downloaded
    BLIND = "blind"  # every src/href/data attribute, nothing downloaded


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Storage; unset means the current working directory
    root_store_dir: Optional[Path] = None

    # HTTP transport
    http_timeout: float = 15.0
    http_max_concurrency: int = 0  # 0 = unlimited
    http_verify_ssl: bool = True
    http_user_agent: str = "WebMirrorBot/1.0"

    # Mirroring
    mirror_mode: MirrorMode = MirrorMode.FILTERED

    # Logging
    log_level: str = "INFO"


settings = Settings()
