"""Helpers for constructing the update service for the running application."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from packaging.version import Version

from app.config import AppConfig, get_app_config
from app.version import get_app_version
from services.update.constants import (
    UPDATER_APP_NAME,
    UPDATER_DIRECTORY_NAME,
    UPDATER_VERSION_FILE,
)
from services.update.downloader import Downloader
from services.update.engine import UpdateEngine
from services.update.errors import SetupError, ValidationError
from services.update.handoff import HandoffOrchestrator
from services.update.layout import InstallLayout
from services.update.models import AppDescriptor
from services.update.versioning import parse_version


_LOGGER = logging.getLogger(__name__)


class CurrentAppBinding:
    """Hold the application this process updates; it can be bound only once."""

    def __init__(self) -> None:
        self._app: AppDescriptor | None = None

    @property
    def is_bound(self) -> bool:
        return self._app is not None

    @property
    def app(self) -> AppDescriptor:
        if self._app is None:
            raise SetupError("The current application must be set before updating.")
        return self._app

    def bind(self, app: AppDescriptor) -> AppDescriptor:
        if self._app is not None:
            raise SetupError("Current application is already set.")
        self._app = app
        _LOGGER.debug("Bound current application to %s", app.name)
        return app


@dataclass(frozen=True)
class UpdateContext:
    """Everything a running application needs to update itself."""

    current: AppDescriptor
    layout: InstallLayout
    engine: UpdateEngine
    updater: AppDescriptor | None

    def orchestrator(self, *, exit_after_launch: bool = False) -> HandoffOrchestrator:
        return HandoffOrchestrator(
            self.layout, self.updater, exit_after_launch=exit_after_launch
        )


def updater_descriptor(
    config: AppConfig | None = None,
    *,
    installed_version: Version | None = None,
) -> AppDescriptor:
    """Describe the updater application at the version shipped with this library."""

    config = config or get_app_config()
    return AppDescriptor(
        name=UPDATER_APP_NAME,
        latest_version=get_app_version(),
        source_address=config.updater.address,
        installed_version=installed_version,
        directory_name=UPDATER_DIRECTORY_NAME,
    )


def read_installed_version(layout: InstallLayout, app: AppDescriptor) -> Version | None:
    directory = layout.app_directory(app)
    if directory is None:
        return None
    version_path = directory / UPDATER_VERSION_FILE
    try:
        text = version_path.read_text(encoding="utf-8").strip()
    except OSError:
        _LOGGER.debug("No version file found at %s", version_path)
        return None
    try:
        return parse_version(text)
    except ValidationError:
        _LOGGER.warning("Ignoring unreadable version file %s", version_path)
        return None


def ensure_updater_installed(
    engine: UpdateEngine, config: AppConfig | None = None
) -> AppDescriptor:
    """Install the updater, or bring it to this library's version, when needed."""

    layout = engine.layout
    probe = updater_descriptor(config)
    if layout.find_executable(probe) is None:
        _LOGGER.info("Updater not found in %s; installing it", layout.root)
        engine.install(probe)
        return updater_descriptor(config, installed_version=probe.latest_version)

    installed = read_installed_version(layout, probe)
    if installed != probe.latest_version:
        _LOGGER.info(
            "Updater version %s differs from %s; updating it",
            installed,
            probe.latest_version,
        )
        engine.update(updater_descriptor(config, installed_version=installed))
        return updater_descriptor(config, installed_version=probe.latest_version)

    _LOGGER.debug("Updater %s is up to date", installed)
    return updater_descriptor(config, installed_version=installed)


def build_update_context(
    current: AppDescriptor | CurrentAppBinding,
    *,
    app_directory: Path | None = None,
    config: AppConfig | None = None,
    install_updater: bool = True,
) -> UpdateContext:
    """Construct an :class:`UpdateContext` for the running application.

    The running application's directory must be named after its
    ``directory_name``; its parent becomes the root for every application.
    With ``install_updater`` the updater is installed or updated as needed,
    otherwise only an existing installation is picked up.
    """

    if isinstance(current, CurrentAppBinding):
        current = current.app
    config = config or get_app_config()
    layout = InstallLayout.for_current_app(current, app_directory)
    engine = UpdateEngine(layout, Downloader(layout, chunk_size=config.download.chunk_size))

    if install_updater:
        updater: AppDescriptor | None = ensure_updater_installed(engine, config)
    else:
        probe = updater_descriptor(config)
        updater = None
        if layout.find_executable(probe) is not None:
            updater = updater_descriptor(
                config, installed_version=read_installed_version(layout, probe)
            )

    return UpdateContext(current=current, layout=layout, engine=engine, updater=updater)


__all__ = [
    "CurrentAppBinding",
    "UpdateContext",
    "build_update_context",
    "ensure_updater_installed",
    "read_installed_version",
    "updater_descriptor",
]
