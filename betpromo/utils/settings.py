"""Import pipeline settings sourced from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

DEFAULT_UPLOAD_PATH = "uploads"
DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024
DEFAULT_BATCH_SIZE = 5000


@dataclass(frozen=True)
class ImportSettings:
    upload_path: str
    max_file_size: int
    batch_size: int
    keep_files: bool
    purge_staging: bool


def _normalize_bool(value: str | None, default: bool = False) -> bool:
    """Return normalized boolean from environment-style value."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"", "0", "false", "no", "off"}:
        return False
    if normalized in {"1", "true", "yes", "on"}:
        return True
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


@lru_cache(maxsize=None)
def get_import_settings() -> ImportSettings:
    """Return the cached import settings."""
    return ImportSettings(
        upload_path=os.getenv("UPLOAD_PATH") or DEFAULT_UPLOAD_PATH,
        max_file_size=_env_int("MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE),
        batch_size=_env_int("IMPORT_BATCH_SIZE", DEFAULT_BATCH_SIZE),
        keep_files=_normalize_bool(os.getenv("IMPORT_KEEP_FILES"), default=False),
        purge_staging=_normalize_bool(os.getenv("IMPORT_PURGE_STAGING"), default=False),
    )


def refresh_import_settings() -> None:
    """Invalidate cached settings (useful for tests)."""
    get_import_settings.cache_clear()
