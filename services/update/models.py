"""Data models used by the update service."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from packaging.version import Version

from services.update.constants import RESERVED_APP_NAME
from services.update.errors import ReservedNameError, UnknownBehaviorError, ValidationError
from services.update.versioning import coerce_version, is_version_newer


class UpdaterBehavior(str, Enum):
    """Determine what the updater does once an update has finished."""

    HIDDEN = "HIDDEN"
    SHOW_MESSAGES = "SHOW_MESSAGES"
    RUN_AFTER_UPDATE = "RUN_AFTER_UPDATE"

    @property
    def shows_messages(self) -> bool:
        return self is not UpdaterBehavior.HIDDEN

    @classmethod
    def parse(cls, text: str) -> "UpdaterBehavior":
        """Parse the enumeration name (or its ordinal) used on the command line."""

        value = text.strip()
        if value.isascii() and value.isdigit():
            members = list(cls)
            index = int(value)
            if index < len(members):
                return members[index]
        else:
            try:
                return cls[value]
            except KeyError:
                pass
        raise UnknownBehaviorError(f"Unknown updater behavior: {text!r}")


class TransactionOutcome(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


@dataclass(frozen=True)
class Credentials:
    """Network credentials attached to package downloads."""

    username: str = ""
    password: str = field(default="", repr=False)
    domain: str = ""

    @property
    def qualified_username(self) -> str:
        if self.domain:
            return f"{self.domain}\\{self.username}"
        return self.username


@dataclass(frozen=True)
class AppDescriptor:
    """Describe an application that can be installed and updated.

    ``directory_name`` defaults to ``name`` and ``ignored_directories`` is
    normalised to a :class:`frozenset`, so ``None`` and an empty collection
    both mean that nothing is ignored.  Versions may be passed as strings and
    are parsed with :mod:`packaging`.
    """

    name: str
    latest_version: Version | None = None
    source_address: str = ""
    installed_version: Version | None = None
    directory_name: str | None = None
    ignored_directories: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        name = self.name.strip() if isinstance(self.name, str) else ""
        if not name:
            raise ValidationError("Application name must not be empty")
        if name == RESERVED_APP_NAME:
            raise ReservedNameError(
                f"Application must not be named '{RESERVED_APP_NAME}'."
            )
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "latest_version", coerce_version(self.latest_version))
        object.__setattr__(
            self, "installed_version", coerce_version(self.installed_version)
        )
        if not self.directory_name:
            object.__setattr__(self, "directory_name", self.name)
        object.__setattr__(
            self,
            "ignored_directories",
            _normalise_ignored(self.ignored_directories),
        )
        object.__setattr__(self, "source_address", (self.source_address or "").rstrip("/"))

    @property
    def needs_update(self) -> bool:
        """Return ``True`` when the latest version is newer than the installed one."""

        if self.latest_version is None:
            return False
        return is_version_newer(self.installed_version, self.latest_version)

    def require_latest_version(self) -> Version:
        if self.latest_version is None:
            raise ValidationError(
                f"The latest version of {self.name} is required to download it"
            )
        return self.latest_version

    @property
    def package_basename(self) -> str:
        return f"{self.name} {self.require_latest_version()}"


@dataclass(frozen=True)
class UpdateManifest:
    """Checksum published next to a package archive."""

    checksum: str


@dataclass(frozen=True)
class DownloadProgress:
    """Snapshot of an ongoing download."""

    bytes_received: int
    total_bytes: int | None = None

    @property
    def percentage(self) -> int | None:
        if not self.total_bytes:
            return None
        return min(100, int(self.bytes_received * 100 / self.total_bytes))


@dataclass(frozen=True)
class UpdateRequest:
    """Everything the updater process needs to update one application."""

    app: AppDescriptor
    behavior: UpdaterBehavior = UpdaterBehavior.RUN_AFTER_UPDATE
    credentials: Credentials | None = None
    relaunch_arguments: str | None = None


def _normalise_ignored(directories: Iterable[str] | None) -> frozenset[str]:
    if not directories:
        return frozenset()
    if isinstance(directories, str):
        directories = (directories,)
    return frozenset(name for name in directories if name)


__all__ = [
    "AppDescriptor",
    "Credentials",
    "DownloadProgress",
    "TransactionOutcome",
    "UpdateManifest",
    "UpdateRequest",
    "UpdaterBehavior",
]
