"""Application-wide configuration loaded from JSON resources."""

from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Mapping

_CONFIG_RESOURCE = "app.json"
_APP_CONFIG_CACHE: AppConfig | None = None

_DEFAULT_UPDATER_ADDRESS = "https://updates.example.com/updater"
_DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class UpdaterSourceConfig:
    """Where the updater application's own packages are published."""

    address: str


@dataclass(frozen=True)
class DownloadConfig:
    """Settings for streaming package downloads."""

    chunk_size: int


@dataclass(frozen=True)
class AppConfig:
    """Structured configuration values for the updater."""

    updater: UpdaterSourceConfig
    download: DownloadConfig


def get_app_config() -> AppConfig:
    """Return the cached application configuration."""

    global _APP_CONFIG_CACHE
    if _APP_CONFIG_CACHE is None:
        _APP_CONFIG_CACHE = load_app_config()
    return _APP_CONFIG_CACHE


def reset_app_config_cache() -> None:
    """Reset the cached configuration for subsequent reloads."""

    global _APP_CONFIG_CACHE
    _APP_CONFIG_CACHE = None


def load_app_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from ``path`` or the bundled JSON resource."""

    data = _read_config_data(path)
    updater_section = data.get("updater")
    download_section = data.get("download")
    return AppConfig(
        updater=_parse_updater_section(updater_section),
        download=_parse_download_section(download_section),
    )


def _read_config_data(path: str | Path | None) -> Mapping[str, Any]:
    if path is not None:
        return _load_json_from_path(Path(path).expanduser())
    return _load_default_config_data()


def _load_json_from_path(path: Path) -> Mapping[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    return _parse_json(raw)


def _load_default_config_data() -> Mapping[str, Any]:
    try:
        resource = resources.files(__package__).joinpath(_CONFIG_RESOURCE)
        raw = resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}
    return _parse_json(raw)


def _parse_json(raw: str) -> Mapping[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, Mapping):
        return parsed
    return {}


def _parse_updater_section(section: Any) -> UpdaterSourceConfig:
    if not isinstance(section, Mapping):
        return UpdaterSourceConfig(address=_DEFAULT_UPDATER_ADDRESS)
    address = section.get("address")
    if not isinstance(address, str) or not address.strip():
        return UpdaterSourceConfig(address=_DEFAULT_UPDATER_ADDRESS)
    return UpdaterSourceConfig(address=address.strip().rstrip("/"))


def _parse_download_section(section: Any) -> DownloadConfig:
    if not isinstance(section, Mapping):
        return DownloadConfig(chunk_size=_DEFAULT_CHUNK_SIZE)
    chunk_size = _coerce_positive_int(section.get("chunk_size"), default=_DEFAULT_CHUNK_SIZE)
    return DownloadConfig(chunk_size=chunk_size)


def _coerce_positive_int(value: Any, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        candidate = int(value)
    elif isinstance(value, str):
        try:
            candidate = int(float(value))
        except ValueError:
            return default
    else:
        return default
    if candidate <= 0:
        return default
    return candidate
