"""Public API for the update service package."""

from __future__ import annotations

from services.update.builder import (
    CurrentAppBinding,
    UpdateContext,
    build_update_context,
    ensure_updater_installed,
)
from services.update.constants import (
    BACKUP_SUFFIX,
    INSTALL_ROOT_ENV,
    RESERVED_APP_NAME,
    TEMP_DIRECTORY_NAME,
    UPDATER_APP_NAME,
    UPDATER_DIRECTORY_NAME,
)
from services.update.downloader import Downloader
from services.update.engine import UpdateEngine, UpdateTransaction
from services.update.errors import (
    ArgumentCountError,
    ChecksumMismatchError,
    DownloadCancelledError,
    IOTransferError,
    MalformedArgumentError,
    ManifestError,
    MissingExecutableError,
    NetworkError,
    ReservedNameError,
    SetupError,
    UnknownBehaviorError,
    UpdateError,
    UpdaterNotInstalledError,
    ValidationError,
)
from services.update.handoff import HandoffOrchestrator, UpdaterRunner
from services.update.layout import InstallLayout
from services.update.models import (
    AppDescriptor,
    Credentials,
    DownloadProgress,
    TransactionOutcome,
    UpdateManifest,
    UpdateRequest,
    UpdaterBehavior,
)
from services.update.reporting import ConsoleReporter, UpdateReporter

__all__ = [
    "BACKUP_SUFFIX",
    "INSTALL_ROOT_ENV",
    "RESERVED_APP_NAME",
    "TEMP_DIRECTORY_NAME",
    "UPDATER_APP_NAME",
    "UPDATER_DIRECTORY_NAME",
    "AppDescriptor",
    "ArgumentCountError",
    "ChecksumMismatchError",
    "ConsoleReporter",
    "Credentials",
    "CurrentAppBinding",
    "DownloadCancelledError",
    "DownloadProgress",
    "Downloader",
    "HandoffOrchestrator",
    "IOTransferError",
    "InstallLayout",
    "MalformedArgumentError",
    "ManifestError",
    "MissingExecutableError",
    "NetworkError",
    "ReservedNameError",
    "SetupError",
    "TransactionOutcome",
    "UnknownBehaviorError",
    "UpdateContext",
    "UpdateEngine",
    "UpdateError",
    "UpdateManifest",
    "UpdateReporter",
    "UpdateRequest",
    "UpdateTransaction",
    "UpdaterBehavior",
    "UpdaterNotInstalledError",
    "UpdaterRunner",
    "ValidationError",
    "build_update_context",
    "ensure_updater_installed",
]
