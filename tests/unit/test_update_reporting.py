from __future__ import annotations

import io

from services.update.errors import IOTransferError, describe_error_chain
from services.update.models import AppDescriptor, DownloadProgress
from services.update.reporting import ConsoleReporter, format_size


def test_format_size_uses_binary_units() -> None:
    assert format_size(None) == "?"
    assert format_size(512) == "512 B"
    assert format_size(2048) == "2.0 KB"
    assert format_size(5 * 1024 * 1024) == "5.0 MB"


def test_console_reporter_skips_repeated_percentages() -> None:
    stream = io.StringIO()
    reporter = ConsoleReporter(stream)

    reporter.started(AppDescriptor(name="Foo"))
    for received in (1, 2, 3, 1000):
        reporter.progress(DownloadProgress(received, 1000))

    lines = stream.getvalue().splitlines()
    assert lines[0] == "Updating Foo"
    assert lines[1:] == ["Downloading: 1 B / 1000 B", "Downloading: 1000 B / 1000 B"]


def test_console_reporter_writes_messages_and_errors() -> None:
    stream = io.StringIO()
    reporter = ConsoleReporter(stream)

    reporter.show_message("Update finished", "Foo was successfully updated!")
    reporter.show_error("Error", "boom")

    assert stream.getvalue().splitlines() == [
        "Update finished: Foo was successfully updated!",
        "Error: boom",
    ]


def test_describe_error_chain_walks_causes() -> None:
    try:
        try:
            raise OSError("disk full")
        except OSError as exc:
            raise IOTransferError("Failed to extract update archive") from exc
    except IOTransferError as error:
        message = describe_error_chain("There was an error while updating Foo", error)

    assert message == (
        "There was an error while updating Foo:\n\n"
        "Failed to extract update archive\n\n"
        "disk full"
    )
