"""
Runtime settings.

Scheduling tunables are per-library rows in queue_config; only process-wide
locations and logging live here.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

APP_NAME = "incread"

# Per-workspace store lives at <workspace>/.incread/db.sqlite
WORKSPACE_STORE_DIR = ".incread"
WORKSPACE_STORE_FILE = "db.sqlite"
CENTRAL_STORE_FILE = "central.sqlite"

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"


def default_data_dir() -> Path:
    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if xdg_data_home:
        return Path(xdg_data_home) / APP_NAME
    return Path.home() / ".local" / "share" / APP_NAME


@dataclass
class Settings:
    data_dir: Path = field(default_factory=default_data_dir)
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @property
    def central_store_path(self) -> Path:
        return self.data_dir / CENTRAL_STORE_FILE


def load_settings() -> Settings:
    """Build settings from INCREAD_* environment variables."""
    settings = Settings()

    data_dir = os.environ.get("INCREAD_DATA_DIR")
    if data_dir:
        settings.data_dir = Path(data_dir).expanduser()

    log_level = os.environ.get("INCREAD_LOG_LEVEL")
    if log_level:
        settings.log_level = log_level.upper()

    cors_origins = os.environ.get("INCREAD_CORS_ORIGINS")
    if cors_origins:
        settings.cors_origins = [
            origin.strip() for origin in cors_origins.split(",") if origin.strip()
        ]

    return settings


def workspace_store_path(folder_path: str | Path) -> Path:
    return Path(folder_path) / WORKSPACE_STORE_DIR / WORKSPACE_STORE_FILE
