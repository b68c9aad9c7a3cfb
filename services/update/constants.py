"""Constants shared across the update service modules."""

from __future__ import annotations

RESERVED_APP_NAME = "Updater"
UPDATER_APP_NAME = "Handoff Updater"
UPDATER_DIRECTORY_NAME = "Updater"
TEMP_DIRECTORY_NAME = "Updater tmp"
UPDATER_VERSION_FILE = "VERSION"

BACKUP_SUFFIX = "_HUbackup"

PACKAGE_EXTENSION = ".zip"
MANIFEST_EXTENSION = ".xml"
MANIFEST_CHECKSUM_ELEMENT = "SHA256"
WINDOWS_EXECUTABLE_EXTENSION = ".exe"

DEFAULT_CHUNK_SIZE = 64 * 1024

MAX_ARCHIVE_TOTAL_BYTES = 500 * 1024 * 1024  # 500 MiB
MAX_ARCHIVE_FILE_SIZE = 250 * 1024 * 1024  # 250 MiB per file
MAX_ARCHIVE_ENTRIES = 5000
MAX_COMPRESSION_RATIO = 100  # Uncompressed vs compressed bytes

INSTALL_ROOT_ENV = "HANDOFF_UPDATE_ROOT"
