"""Interface to whatever presents update progress and messages to the user."""

from __future__ import annotations

import logging
import sys
from typing import Protocol, TextIO

from services.update.models import AppDescriptor, DownloadProgress


_LOGGER = logging.getLogger(__name__)


class UpdateReporter(Protocol):
    """Protocol describing the updater's user interface."""

    def started(self, app: AppDescriptor) -> None:
        """Called once before the update begins."""

    def progress(self, progress: DownloadProgress) -> None:
        """Called for every chunk received while downloading."""

    def show_message(self, title: str, message: str) -> None:
        """Show an informational message."""

    def show_error(self, title: str, message: str) -> None:
        """Show an error message."""


def format_size(size: int | None) -> str:
    if size is None:
        return "?"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


class ConsoleReporter:
    """Write progress and messages to a text stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stderr
        self._last_percentage: int | None = None

    def started(self, app: AppDescriptor) -> None:
        self._last_percentage = None
        self._write(f"Updating {app.name}")

    def progress(self, progress: DownloadProgress) -> None:
        percentage = progress.percentage
        if percentage is not None and percentage == self._last_percentage:
            return
        self._last_percentage = percentage
        self._write(
            f"Downloading: {format_size(progress.bytes_received)} / {format_size(progress.total_bytes)}"
        )

    def show_message(self, title: str, message: str) -> None:
        _LOGGER.info("%s: %s", title, message)
        self._write(f"{title}: {message}")

    def show_error(self, title: str, message: str) -> None:
        _LOGGER.error("%s: %s", title, message)
        self._write(f"{title}: {message}")

    def _write(self, text: str) -> None:
        print(text, file=self._stream, flush=True)


__all__ = ["ConsoleReporter", "UpdateReporter", "format_size"]
