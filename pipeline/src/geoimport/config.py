"""Runtime configuration for the importers."""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_CITY_LEVEL = 8
DEFAULT_NB_THREADS = 4

ADDR_DOC_TYPE = "addr"
STREET_DOC_TYPE = "street"


def default_dsn() -> str:
    return os.getenv("GEOIMPORT_DSN", "dbname=geoimport")


def default_log_level() -> str:
    return os.getenv("GEOIMPORT_LOG_LEVEL", "INFO")


def repo_root() -> Path:
    return Path(__file__).resolve().parents[3]


def migrations_dir() -> Path:
    return repo_root() / "pipeline" / "sql" / "migrations"


def index_settings_config_path() -> Path:
    return repo_root() / "pipeline" / "config" / "index_settings.json"
