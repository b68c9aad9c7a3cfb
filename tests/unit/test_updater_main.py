from __future__ import annotations

from pathlib import Path

import pytest

from app.updater import EXIT_SETUP_FAILED, LOG_VERBOSITY_ENV, main
from services.update.constants import UPDATER_DIRECTORY_NAME
from services.update.handoff import EXIT_INVALID_ARGUMENTS, EXIT_OK
from shared import logging_config
from tests.unit.update_service_test_utils import RecordingReporter, populate, publish_package


@pytest.fixture(autouse=True)
def reset_logging():
    logging_config._reset_for_tests()
    try:
        yield
    finally:
        logging_config._reset_for_tests()


def test_main_refuses_to_run_outside_updater_directory(tmp_path: Path) -> None:
    reporter = RecordingReporter()
    wrong_dir = populate(tmp_path / "root" / "Downloads", {})

    exit_code = main(["Foo"], reporter=reporter, app_directory=wrong_dir)

    assert exit_code == EXIT_SETUP_FAILED
    title, message = reporter.errors[0]
    assert title == "Error"
    assert message.startswith("Error while initializing the updater:")
    assert "folder name" in message


def test_main_rejects_bad_arguments(tmp_path: Path) -> None:
    reporter = RecordingReporter()
    updater_dir = populate(tmp_path / "root" / UPDATER_DIRECTORY_NAME, {})

    exit_code = main(["Foo", "1.0"], reporter=reporter, app_directory=updater_dir)

    assert exit_code == EXIT_INVALID_ARGUMENTS
    assert reporter.errors


def test_main_updates_sibling_application(tmp_path: Path) -> None:
    reporter = RecordingReporter()
    source = tmp_path / "source"
    publish_package(source, "Foo", "1.1.0", {"app.exe": b"v2", "data/new.txt": b"new"})
    root = tmp_path / "root"
    updater_dir = populate(root / UPDATER_DIRECTORY_NAME, {})
    populate(root / "Foo", {"app.exe": b"v1", "cache/state.bin": b"keep"})

    exit_code = main(
        ["Foo", "1.1.0", "Foo", source.as_uri(), "{cache}", "SHOW_MESSAGES"],
        reporter=reporter,
        app_directory=updater_dir,
    )

    assert exit_code == EXIT_OK
    assert reporter.messages == [("Update finished", "Foo was successfully updated!")]
    assert (root / "Foo" / "app.exe").read_bytes() == b"v2"
    assert (root / "Foo" / "data" / "new.txt").read_bytes() == b"new"
    assert (root / "Foo" / "cache" / "state.bin").read_bytes() == b"keep"


def test_main_applies_log_verbosity_from_environment(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv(LOG_VERBOSITY_ENV, "verbose")
    wrong_dir = populate(tmp_path / "root" / "Downloads", {})

    main(["Foo"], reporter=RecordingReporter(), app_directory=wrong_dir)

    assert logging_config.get_file_log_verbosity() == logging_config.LogVerbosity.VERBOSE


def test_main_ignores_unknown_log_verbosity(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv(LOG_VERBOSITY_ENV, "chatty")
    wrong_dir = populate(tmp_path / "root" / "Downloads", {})

    exit_code = main(["Foo"], reporter=RecordingReporter(), app_directory=wrong_dir)

    assert exit_code == EXIT_SETUP_FAILED
    assert logging_config.get_file_log_verbosity() == logging_config.LogVerbosity.INFO
