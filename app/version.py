from __future__ import annotations

"""Version of the updater shipped with this library."""

from functools import lru_cache
import os
from importlib import resources

_FALLBACK_VERSION = "0.0.0.dev0"
_VERSION_ENV = "HANDOFF_UPDATER_VERSION"


def _read_version_file() -> str | None:
    try:
        text = resources.files(__package__).joinpath("VERSION").read_text(encoding="utf-8")
    except (FileNotFoundError, ModuleNotFoundError):
        return None
    version = text.strip()
    return version or None


def _version_from_env() -> str | None:
    env_version = os.environ.get(_VERSION_ENV)
    if not env_version:
        return None
    return _normalize(env_version)


def _normalize(raw_version: str) -> str:
    version = raw_version.strip()
    if version.startswith("v"):
        version = version[1:]
    return version


@lru_cache(maxsize=1)
def get_app_version() -> str:
    """Return the updater version.

    The order of precedence is:
    1. The ``HANDOFF_UPDATER_VERSION`` environment variable.
    2. Embedded ``VERSION`` file packaged with the library.
    3. A fallback development version string.
    """

    for resolver in (_version_from_env, _read_version_file):
        version = resolver()
        if version:
            return version
    return _FALLBACK_VERSION


__all__ = ["get_app_version"]
