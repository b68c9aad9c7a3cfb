"""Download package archives and their manifests into the scratch directory."""

from __future__ import annotations

import http.client
import logging
import threading
from pathlib import Path
from typing import BinaryIO
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import (
    HTTPBasicAuthHandler,
    HTTPPasswordMgrWithDefaultRealm,
    OpenerDirector,
    build_opener,
)

from services.update.constants import DEFAULT_CHUNK_SIZE, MANIFEST_EXTENSION, PACKAGE_EXTENSION
from services.update.errors import DownloadCancelledError, IOTransferError, NetworkError
from services.update.hashing import parse_manifest, verify_checksum
from services.update.layout import InstallLayout
from services.update.models import AppDescriptor, Credentials, DownloadProgress, UpdateManifest
from services.update.tasks import BackgroundTask, ProgressCallback


_LOGGER = logging.getLogger(__name__)

_MISSING_MANIFEST_STATUSES = {404, 410}


class Downloader:
    """Fetch ``{address}/{version}/{name} {version}.zip`` and its manifest."""

    def __init__(self, layout: InstallLayout, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._layout = layout
        self._chunk_size = max(1, int(chunk_size))

    def package_urls(self, app: AppDescriptor) -> tuple[str, str]:
        """Return the archive and manifest URLs for ``app``'s latest version."""

        version = str(app.require_latest_version())
        directory = f"{app.source_address}/{quote(version)}"
        basename = app.package_basename
        return (
            f"{directory}/{quote(basename + PACKAGE_EXTENSION)}",
            f"{directory}/{quote(basename + MANIFEST_EXTENSION)}",
        )

    def download(
        self,
        app: AppDescriptor,
        credentials: Credentials | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Path:
        """Download and verify the package for ``app``, returning its local path.

        Checksum verification is the last step, so a mismatch surfaces as the
        download's own error.  A set ``cancel_event`` is observed once the
        archive transfer has completed.
        """

        archive_url, manifest_url = self.package_urls(app)
        opener = _build_opener(credentials, archive_url)
        target = self._layout.ensure_temp_directory() / (app.package_basename + PACKAGE_EXTENSION)

        _LOGGER.info("Downloading %s %s from %s", app.name, app.latest_version, archive_url)
        self._fetch_archive(opener, archive_url, target, on_progress)
        if cancel_event is not None and cancel_event.is_set():
            raise DownloadCancelledError("The download process was cancelled.")
        _LOGGER.debug("Downloaded %s to %s", archive_url, target)

        manifest = self._fetch_manifest(opener, manifest_url)
        verify_checksum(target, manifest)
        return target

    def download_async(
        self, app: AppDescriptor, credentials: Credentials | None = None
    ) -> BackgroundTask[Path]:
        def work(on_progress: ProgressCallback, cancel_event: threading.Event) -> Path:
            return self.download(
                app, credentials, on_progress=on_progress, cancel_event=cancel_event
            )

        return BackgroundTask(work, name=f"download-{app.name}").start()

    def _fetch_archive(
        self,
        opener: OpenerDirector,
        url: str,
        target: Path,
        on_progress: ProgressCallback | None,
    ) -> None:
        response = _open(opener, url)
        with response:
            total = _content_length(response)
            try:
                destination = target.open("wb")
            except OSError as exc:
                raise IOTransferError(f"Failed to create {target}: {exc}") from exc
            with destination:
                received = self._stream(response, destination, total, on_progress)
        if total is not None and received < total:
            raise NetworkError(
                f"Download of {url} ended after {received} of {total} bytes"
            )

    def _stream(
        self,
        response: BinaryIO,
        destination: BinaryIO,
        total: int | None,
        on_progress: ProgressCallback | None,
    ) -> int:
        received = 0
        while True:
            try:
                chunk = response.read(self._chunk_size)
            except (OSError, http.client.HTTPException) as exc:
                raise NetworkError(f"Connection lost while downloading: {exc}") from exc
            if not chunk:
                return received
            try:
                destination.write(chunk)
            except OSError as exc:
                raise IOTransferError(f"Failed to write downloaded data: {exc}") from exc
            received += len(chunk)
            if on_progress is not None:
                on_progress(DownloadProgress(received, total))

    def _fetch_manifest(self, opener: OpenerDirector, url: str) -> UpdateManifest | None:
        try:
            response = _open(opener, url)
        except NetworkError as exc:
            if _is_missing(exc.__cause__):
                _LOGGER.warning("No manifest published at %s; checksum will not be verified", url)
                return None
            raise
        with response:
            try:
                payload = response.read()
            except (OSError, http.client.HTTPException) as exc:
                raise NetworkError(f"Failed to download manifest: {exc}") from exc
        return parse_manifest(payload.decode("utf-8-sig"))


def _build_opener(credentials: Credentials | None, url: str) -> OpenerDirector:
    if credentials is None:
        return build_opener()
    passwords = HTTPPasswordMgrWithDefaultRealm()
    passwords.add_password(None, url.rsplit("/", 2)[0], credentials.qualified_username, credentials.password)
    return build_opener(HTTPBasicAuthHandler(passwords))


def _open(opener: OpenerDirector, url: str):
    try:
        return opener.open(url)  # nosec - address comes from the application descriptor
    except HTTPError as exc:
        raise NetworkError(f"Failed to download {url}: HTTP {exc.code} {exc.reason}") from exc
    except URLError as exc:
        raise NetworkError(f"Failed to download {url}: {exc.reason}") from exc
    except (OSError, http.client.HTTPException) as exc:
        raise NetworkError(f"Failed to download {url}: {exc}") from exc
    except ValueError as exc:
        raise NetworkError(f"Invalid package address {url!r}: {exc}") from exc


def _is_missing(error: BaseException | None) -> bool:
    if isinstance(error, HTTPError):
        return error.code in _MISSING_MANIFEST_STATUSES
    if isinstance(error, URLError):
        return isinstance(error.reason, FileNotFoundError)
    return False


def _content_length(response: object) -> int | None:
    headers = getattr(response, "headers", None)
    raw = headers.get("Content-Length") if headers is not None else None
    try:
        value = int(raw) if raw is not None else None
    except ValueError:
        return None
    if value is None or value < 0:
        return None
    return value


__all__ = ["Downloader"]
