"""Directory rules for the root that holds every installed application.

The root contains one directory per application (named after
:attr:`AppDescriptor.directory_name`), the updater's own directory and a
scratch directory for downloads that is wiped at the start and end of every
operation.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path

from services.update.constants import (
    INSTALL_ROOT_ENV,
    TEMP_DIRECTORY_NAME,
    WINDOWS_EXECUTABLE_EXTENSION,
)
from services.update.errors import IOTransferError, SetupError
from services.update.models import AppDescriptor

_LOGGER = logging.getLogger(__name__)


def executable_name(app_name: str) -> str:
    if os.name == "nt":
        return app_name + WINDOWS_EXECUTABLE_EXTENSION
    return app_name


def find_process_directory() -> Path:
    """Return the directory holding the running program."""

    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(sys.argv[0] or ".").resolve().parent


@dataclass(frozen=True)
class InstallLayout:
    root: Path

    @classmethod
    def for_current_app(
        cls, app: AppDescriptor, app_directory: Path | None = None
    ) -> "InstallLayout":
        """Resolve the root from the directory the current application runs from.

        ``HANDOFF_UPDATE_ROOT`` takes precedence when set.  Otherwise the
        application's directory must be named after its ``directory_name`` and
        the root is its parent.
        """

        override = os.environ.get(INSTALL_ROOT_ENV)
        if override:
            path = Path(override).expanduser()
            if not path.is_dir():
                raise SetupError(f"Configured root directory does not exist: {path}")
            _LOGGER.debug("Using configured root directory %s", path)
            return cls(path)

        directory = (app_directory or find_process_directory()).resolve()
        if directory.name != app.directory_name:
            raise SetupError(
                f"The folder name of the application is incorrect: "
                f"'{directory.name}' should be '{app.directory_name}'."
            )
        _LOGGER.debug("Resolved root directory to %s", directory.parent)
        return cls(directory.parent)

    @property
    def temp_directory(self) -> Path:
        return self.root / TEMP_DIRECTORY_NAME

    def app_directory(self, app: AppDescriptor, *, create: bool = False) -> Path | None:
        path = self.root / app.directory_name
        if path.is_dir():
            return path
        if not create:
            return None
        try:
            path.mkdir(parents=True)
        except OSError as exc:
            raise IOTransferError(f"Failed to create directory {path}: {exc}") from exc
        _LOGGER.info("Created application directory %s", path)
        return path

    def ensure_temp_directory(self) -> Path:
        try:
            self.temp_directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IOTransferError(
                f"Failed to create temporary directory {self.temp_directory}: {exc}"
            ) from exc
        return self.temp_directory

    def delete_temp(self) -> None:
        temp = self.temp_directory
        if not temp.exists():
            return
        try:
            shutil.rmtree(temp)
        except OSError as exc:
            raise IOTransferError(f"Failed to delete temporary directory {temp}: {exc}") from exc
        _LOGGER.debug("Deleted temporary directory %s", temp)

    def find_executable(self, app: AppDescriptor) -> Path | None:
        directory = self.app_directory(app)
        if directory is None:
            return None
        candidate = directory / executable_name(app.name)
        if candidate.is_file():
            return candidate
        return None


__all__ = ["InstallLayout", "executable_name", "find_process_directory"]
