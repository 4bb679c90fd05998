"""Service configuration.

All limits, toggles, paths and credentials live on a single immutable
``Settings`` value. It is built once at startup (``get_settings``) or
directly in tests and handed to each component's constructor, so no
module reads configuration from the environment on its own.

Environment variables use the ``IMAGEBED_`` prefix, e.g.
``IMAGEBED_ENABLE_CACHE=true`` or ``IMAGEBED_SESSION_COOKIE=...``.
"""

from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

MB = 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="IMAGEBED_", env_file=".env", frozen=True, extra="ignore")

    # Remote image host
    upload_url: str = "https://stream-upload.goofish.com/api/upload.api"
    upload_query: Dict[str, str] = {"_input_charset": "utf-8", "appkey": "fleamarket"}
    session_cookie: str = ""
    upload_timeout: float = 30.0
    verify_tls: bool = True

    # Upload limits
    max_file_size: int = 50 * MB
    allowed_types: List[str] = [
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/jpg",
    ]
    compress_threshold: int = 8 * MB

    # Access control
    enable_rate_limit: bool = True
    rate_limit_requests: int = 10
    rate_limit_window: int = 60
    rate_limit_dir: Path = Path(tempfile.gettempdir())
    enable_ip_whitelist: bool = False
    ip_whitelist: List[str] = ["127.0.0.1", "::1"]

    # Result cache
    enable_cache: bool = False
    cache_dir: Path = Path("cache")
    cache_ttl: int = 24 * 60 * 60

    # Gallery
    gallery_file: Path = Path("gallery.json")
    gallery_limit: int = 1000
    default_category: str = "uncategorized"

    # Logging
    enable_logging: bool = True
    log_file: Optional[Path] = Path("logs/upload.log")
    log_level: str = "INFO"

    lock_timeout: float = 10.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
