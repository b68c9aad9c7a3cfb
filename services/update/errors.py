"""Exception hierarchy raised by the update service."""

from __future__ import annotations


class UpdateError(RuntimeError):
    """Base class for every failure reported by the update service."""


class ValidationError(UpdateError):
    """Raised when an application descriptor or request is invalid."""


class ReservedNameError(ValidationError):
    """Raised when an application uses the name reserved for the updater."""


class ArgumentError(ValidationError):
    """Raised when the handoff arguments cannot be decoded."""


class ArgumentCountError(ArgumentError):
    """Raised when the handoff argument list has an unexpected length."""


class MalformedArgumentError(ArgumentError):
    """Raised when a single handoff argument does not follow its format."""


class UnknownBehaviorError(ArgumentError):
    """Raised when the updater behavior flag is not recognised."""


class NetworkError(UpdateError):
    """Raised when the remote package source cannot be reached."""


class DownloadCancelledError(NetworkError):
    """Raised when a background download was cancelled."""


class ManifestError(UpdateError):
    """Raised when a downloaded manifest cannot be interpreted."""


class ChecksumMismatchError(UpdateError):
    """Raised when a package does not match the checksum in its manifest."""


class IOTransferError(UpdateError):
    """Raised when renaming, deleting or extracting files fails."""


class UpdaterNotInstalledError(UpdateError):
    """Raised when the updater application is not available locally."""


class MissingExecutableError(UpdateError):
    """Raised when an application's executable cannot be located."""


class SetupError(UpdateError):
    """Raised when the running process is not set up for updating."""


def describe_error_chain(initial_message: str, error: BaseException | None) -> str:
    """Return ``initial_message`` followed by every message in ``error``'s chain."""

    lines = [f"{initial_message}:"]
    seen: set[int] = set()
    current = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current).strip() or type(current).__name__
        lines.append(text)
        current = current.__cause__ or current.__context__
    return "\n\n".join(lines)


__all__ = [
    "ArgumentCountError",
    "ArgumentError",
    "ChecksumMismatchError",
    "DownloadCancelledError",
    "IOTransferError",
    "MalformedArgumentError",
    "ManifestError",
    "MissingExecutableError",
    "NetworkError",
    "ReservedNameError",
    "SetupError",
    "UnknownBehaviorError",
    "UpdateError",
    "UpdaterNotInstalledError",
    "ValidationError",
    "describe_error_chain",
]
