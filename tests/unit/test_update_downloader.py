from __future__ import annotations

import hashlib
import logging
import threading
from pathlib import Path

import pytest

from services.update.downloader import Downloader
from services.update.errors import (
    ChecksumMismatchError,
    DownloadCancelledError,
    ManifestError,
    NetworkError,
)
from services.update.models import AppDescriptor, Credentials, DownloadProgress
from tests.unit.update_service_test_utils import (
    make_app,
    make_layout,
    publish_package,
    serve_directory,
)

FILES = {"Foo": b"application binary", "lib/core.dll": b"library code"}


def test_package_urls_follow_remote_layout(tmp_path: Path) -> None:
    downloader = Downloader(make_layout(tmp_path))
    app = AppDescriptor(
        name="Foo Bar", latest_version="1.2.0", source_address="https://example.test/apps/"
    )

    assert downloader.package_urls(app) == (
        "https://example.test/apps/1.2.0/Foo%20Bar%201.2.0.zip",
        "https://example.test/apps/1.2.0/Foo%20Bar%201.2.0.xml",
    )


def test_download_verifies_and_stores_archive_in_temp(tmp_path: Path) -> None:
    source = tmp_path / "source"
    archive = publish_package(source, "Foo", "1.2.0", FILES)
    layout = make_layout(tmp_path)
    events: list[DownloadProgress] = []

    path = Downloader(layout, chunk_size=8).download(
        make_app(source), on_progress=events.append
    )

    assert path == layout.temp_directory / "Foo 1.2.0.zip"
    assert path.read_bytes() == archive.read_bytes()
    assert events
    assert events[-1].bytes_received == archive.stat().st_size
    assert events[-1].total_bytes == archive.stat().st_size
    received = [event.bytes_received for event in events]
    assert received == sorted(received)


def test_download_tolerates_missing_manifest(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    source = tmp_path / "source"
    publish_package(source, "Foo", "1.2.0", FILES, manifest=False)

    with caplog.at_level(logging.WARNING, logger="services.update.downloader"):
        path = Downloader(make_layout(tmp_path)).download(make_app(source))

    assert path.exists()
    assert "No manifest published" in caplog.text


def test_download_rejects_checksum_mismatch(tmp_path: Path) -> None:
    source = tmp_path / "source"
    publish_package(source, "Foo", "1.2.0", FILES, checksum="0" * 64)

    with pytest.raises(ChecksumMismatchError):
        Downloader(make_layout(tmp_path)).download(make_app(source))


def test_download_rejects_manifest_without_checksum(tmp_path: Path) -> None:
    source = tmp_path / "source"
    publish_package(source, "Foo", "1.2.0", FILES, manifest=False)
    (source / "1.2.0" / "Foo 1.2.0.xml").write_text("<Update/>", encoding="utf-8")

    with pytest.raises(ManifestError):
        Downloader(make_layout(tmp_path)).download(make_app(source))


def test_download_reports_missing_archive_as_network_error(tmp_path: Path) -> None:
    source = tmp_path / "source"
    source.mkdir()

    with pytest.raises(NetworkError):
        Downloader(make_layout(tmp_path)).download(make_app(source))


def test_download_rejects_invalid_address(tmp_path: Path) -> None:
    app = AppDescriptor(name="Foo", latest_version="1.0", source_address="not a url")

    with pytest.raises(NetworkError):
        Downloader(make_layout(tmp_path)).download(app)


def test_download_observes_cancellation_after_transfer(tmp_path: Path) -> None:
    source = tmp_path / "source"
    publish_package(source, "Foo", "1.2.0", FILES)
    cancel_event = threading.Event()
    cancel_event.set()
    events: list[DownloadProgress] = []

    with pytest.raises(DownloadCancelledError):
        Downloader(make_layout(tmp_path)).download(
            make_app(source), on_progress=events.append, cancel_event=cancel_event
        )

    assert events


def test_download_over_http_with_missing_manifest(tmp_path: Path) -> None:
    source = tmp_path / "source"
    archive = publish_package(source, "Foo", "1.2.0", FILES, manifest=False)

    with serve_directory(source) as address:
        app = AppDescriptor(name="Foo", latest_version="1.2.0", source_address=address)
        path = Downloader(make_layout(tmp_path)).download(app)

    assert path.read_bytes() == archive.read_bytes()


def test_download_over_http_sends_domain_credentials(tmp_path: Path) -> None:
    source = tmp_path / "source" / "apps"
    archive = publish_package(source, "Foo", "1.2.0", FILES)
    credentials = Credentials(username="alice", password="s3cret", domain="CORP")

    with serve_directory(tmp_path / "source", username="CORP\\alice", password="s3cret") as base:
        app = AppDescriptor(name="Foo", latest_version="1.2.0", source_address=f"{base}/apps")
        path = Downloader(make_layout(tmp_path)).download(app, credentials)

        with pytest.raises(NetworkError, match="401"):
            Downloader(make_layout(tmp_path)).download(app)

    assert hashlib.sha256(path.read_bytes()).hexdigest() == hashlib.sha256(
        archive.read_bytes()
    ).hexdigest()


def test_download_async_streams_progress_then_result(tmp_path: Path) -> None:
    source = tmp_path / "source"
    publish_package(source, "Foo", "1.2.0", FILES)

    task = Downloader(make_layout(tmp_path), chunk_size=4).download_async(make_app(source))
    events = list(task.progress())

    assert task.result(timeout=10).name == "Foo 1.2.0.zip"
    assert events
    assert task.done()
