"""YAML configuration for the command-line tool."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from cmm_common.schema import EXPORT_SHEET_NAME, EXPORT_TITLE

from .session import DEFAULT_DEBOUNCE_SECONDS

DEFAULT_CONFIG_PATH = Path("cmm.yaml")
CONFIG_ENV_KEY = "CMM_CONFIG"
DEFAULT_DB_NAME = "capability_matrix.db"
DEFAULT_JOURNAL_NAME = "last_delete.json"
DEFAULT_VERSION = "1.0"


class ConfigError(ValueError):
    """Raised when the YAML configuration is invalid."""


@dataclass
class StoreSettings:
    db_path: Path = Path(DEFAULT_DB_NAME)
    undo_journal: Path = Path(DEFAULT_JOURNAL_NAME)


@dataclass
class ExportSettings:
    title: str = EXPORT_TITLE
    sheet_name: str = EXPORT_SHEET_NAME
    default_version: str = DEFAULT_VERSION
    output_dir: Path = Path("exports")


@dataclass
class SessionSettings:
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS


@dataclass
class AppConfig:
    path: Optional[Path] = None
    store: StoreSettings = field(default_factory=StoreSettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    session: SessionSettings = field(default_factory=SessionSettings)


def _resolve_path(base: Path, value: Any) -> Path:
    return (base / str(value)).expanduser().resolve()


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"`{name}` must be a mapping")
    return section


def default_config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_KEY, DEFAULT_CONFIG_PATH))


def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Load the YAML configuration file.

    A missing file gives the defaults (paths relative to the working directory);
    relative paths inside a file resolve against the file's own directory.
    """

    path = path or default_config_path()
    base = path.parent
    if not path.exists():
        return AppConfig(
            path=None,
            store=StoreSettings(
                db_path=_resolve_path(Path.cwd(), DEFAULT_DB_NAME),
                undo_journal=_resolve_path(Path.cwd(), DEFAULT_JOURNAL_NAME),
            ),
            export=ExportSettings(output_dir=_resolve_path(Path.cwd(), "exports")),
        )

    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Top level of {path} must be a mapping")

    store_cfg = _section(raw, "store")
    export_cfg = _section(raw, "export")
    session_cfg = _section(raw, "session")

    try:
        store = StoreSettings(
            db_path=_resolve_path(base, store_cfg.get("db_path", DEFAULT_DB_NAME)),
            undo_journal=_resolve_path(base, store_cfg.get("undo_journal", DEFAULT_JOURNAL_NAME)),
        )
        export = ExportSettings(
            title=str(export_cfg.get("title", EXPORT_TITLE)),
            sheet_name=str(export_cfg.get("sheet_name", EXPORT_SHEET_NAME)),
            default_version=str(export_cfg.get("default_version", DEFAULT_VERSION)),
            output_dir=_resolve_path(base, export_cfg.get("output_dir", "exports")),
        )
        session = SessionSettings(
            debounce_seconds=float(session_cfg.get("debounce_seconds", DEFAULT_DEBOUNCE_SECONDS)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value in {path}: {exc}") from exc

    if session.debounce_seconds < 0:
        raise ConfigError("session.debounce_seconds must not be negative")

    return AppConfig(path=path, store=store, export=export, session=session)


__all__ = [
    "AppConfig",
    "ConfigError",
    "ExportSettings",
    "SessionSettings",
    "StoreSettings",
    "load_config",
    "default_config_path",
    "CONFIG_ENV_KEY",
]
