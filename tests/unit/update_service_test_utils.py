from __future__ import annotations

import base64
import functools
import hashlib
import threading
from contextlib import contextmanager
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Iterator, Mapping
from zipfile import ZIP_DEFLATED, ZIP_STORED, ZipFile

from services.update.layout import InstallLayout
from services.update.models import AppDescriptor, DownloadProgress


def write_package_archive(
    path: Path,
    files: Mapping[str, bytes],
    *,
    corrupt_member: str | None = None,
) -> Path:
    """Write a zip archive holding ``files``.

    With ``corrupt_member`` the archive is stored uncompressed and that
    member's bytes are flipped afterwards, so reading it fails its CRC check
    while the members before it extract normally.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    compression = ZIP_STORED if corrupt_member else ZIP_DEFLATED
    with ZipFile(path, "w", compression=compression) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    if corrupt_member is not None:
        payload = files[corrupt_member]
        data = path.read_bytes()
        index = data.index(payload)
        damaged = bytes(byte ^ 0xFF for byte in payload)
        path.write_bytes(data[:index] + damaged + data[index + len(payload) :])
    return path


def write_manifest(path: Path, checksum: str) -> Path:
    path.write_text(
        f'<?xml version="1.0" encoding="utf-8"?>\n<Update><SHA256>{checksum}</SHA256></Update>\n',
        encoding="utf-8",
    )
    return path


def publish_package(
    source_root: Path,
    name: str,
    version: str,
    files: Mapping[str, bytes],
    *,
    manifest: bool = True,
    checksum: str | None = None,
    corrupt_member: str | None = None,
) -> Path:
    """Lay out ``<version>/<name> <version>.zip`` (and ``.xml``) under ``source_root``."""

    version_dir = source_root / version
    archive = write_package_archive(
        version_dir / f"{name} {version}.zip", files, corrupt_member=corrupt_member
    )
    if manifest:
        digest = checksum or hashlib.sha256(archive.read_bytes()).hexdigest()
        write_manifest(version_dir / f"{name} {version}.xml", digest)
    return archive


def populate(directory: Path, files: Mapping[str, bytes]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for relative, content in files.items():
        path = directory / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return directory


def snapshot_tree(directory: Path) -> dict[str, bytes | None]:
    """Map every entry below ``directory`` to its bytes (``None`` for directories)."""

    snapshot: dict[str, bytes | None] = {}
    for path in sorted(directory.rglob("*")):
        relative = path.relative_to(directory).as_posix()
        snapshot[relative] = None if path.is_dir() else path.read_bytes()
    return snapshot


def make_layout(tmp_path: Path) -> InstallLayout:
    root = tmp_path / "root"
    root.mkdir(exist_ok=True)
    return InstallLayout(root)


def make_app(
    source_root: Path,
    name: str = "Foo",
    latest_version: str = "1.2.0",
    **kwargs,
) -> AppDescriptor:
    return AppDescriptor(
        name=name,
        latest_version=latest_version,
        source_address=source_root.as_uri(),
        **kwargs,
    )


class RecordingReporter:
    def __init__(self) -> None:
        self.started_apps: list[AppDescriptor] = []
        self.progress_events: list[DownloadProgress] = []
        self.messages: list[tuple[str, str]] = []
        self.errors: list[tuple[str, str]] = []

    def started(self, app: AppDescriptor) -> None:
        self.started_apps.append(app)

    def progress(self, progress: DownloadProgress) -> None:
        self.progress_events.append(progress)

    def show_message(self, title: str, message: str) -> None:
        self.messages.append((title, message))

    def show_error(self, title: str, message: str) -> None:
        self.errors.append((title, message))


class RecordingPopen:
    def __init__(self, error: OSError | None = None) -> None:
        self.calls: list[tuple[list[str], dict[str, object]]] = []
        self._error = error

    def __call__(self, command: list[str], **kwargs: object) -> object:
        if self._error is not None:
            raise self._error
        self.calls.append((list(command), kwargs))
        return object()


class _QuietHandler(SimpleHTTPRequestHandler):
    credentials: str | None = None

    def do_GET(self) -> None:  # noqa: N802 - http.server naming
        if self.credentials is not None:
            header = self.headers.get("Authorization", "")
            expected = "Basic " + base64.b64encode(self.credentials.encode("utf-8")).decode("ascii")
            if header != expected:
                self.send_response(401)
                self.send_header("WWW-Authenticate", 'Basic realm="updates"')
                self.send_header("Content-Length", "0")
                self.end_headers()
                return
        super().do_GET()

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        pass


@contextmanager
def serve_directory(
    directory: Path, *, username: str | None = None, password: str = ""
) -> Iterator[str]:
    """Serve ``directory`` over HTTP on localhost and yield its base URL."""

    handler_cls = type(
        "PackageHandler",
        (_QuietHandler,),
        {"credentials": f"{username}:{password}" if username is not None else None},
    )
    handler = functools.partial(handler_cls, directory=str(directory))
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        host, port = server.server_address[:2]
        yield f"http://{host}:{port}"
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


__all__ = [
    "RecordingPopen",
    "RecordingReporter",
    "make_app",
    "make_layout",
    "populate",
    "publish_package",
    "serve_directory",
    "snapshot_tree",
    "write_manifest",
    "write_package_archive",
]
