"""Entry point of the updater process.

The updater is started by an application that wants to be updated (see
:class:`services.update.handoff.HandoffOrchestrator`) and receives the update
request as positional command-line arguments.  It must run from its own
directory inside the root that holds every application.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from app.config import get_app_config
from services.update.builder import CurrentAppBinding, updater_descriptor
from services.update.downloader import Downloader
from services.update.engine import UpdateEngine
from services.update.errors import SetupError, describe_error_chain
from services.update.handoff import UpdaterRunner
from services.update.layout import InstallLayout
from services.update.reporting import ConsoleReporter, UpdateReporter
from shared.logging_config import ensure_app_logging, set_file_log_verbosity

_LOGGER = logging.getLogger(__name__)

EXIT_SETUP_FAILED = 3
LOG_VERBOSITY_ENV = "HANDOFF_LOG_VERBOSITY"


def main(
    argv: Sequence[str] | None = None,
    *,
    reporter: UpdateReporter | None = None,
    app_directory: Path | None = None,
) -> int:
    ensure_app_logging()
    _apply_log_verbosity()
    arguments = list(sys.argv[1:] if argv is None else argv)
    reporter = reporter or ConsoleReporter()
    config = get_app_config()

    binding = CurrentAppBinding()
    try:
        current = binding.bind(updater_descriptor(config))
        layout = InstallLayout.for_current_app(current, app_directory)
    except SetupError as exc:
        _LOGGER.critical("Updater is not set up correctly: %s", exc)
        reporter.show_error(
            "Error", describe_error_chain("Error while initializing the updater", exc)
        )
        return EXIT_SETUP_FAILED

    _LOGGER.info("Updater %s started with %s arguments", current.latest_version, len(arguments))
    engine = UpdateEngine(layout, Downloader(layout, chunk_size=config.download.chunk_size))
    runner = UpdaterRunner(layout, reporter, engine=engine)
    exit_code = runner.run(arguments)
    _LOGGER.info("Updater finished with exit code %s", exit_code)
    return exit_code


def _apply_log_verbosity() -> None:
    verbosity = os.environ.get(LOG_VERBOSITY_ENV)
    if not verbosity:
        return
    try:
        set_file_log_verbosity(verbosity)
    except ValueError as exc:
        _LOGGER.warning("Ignoring %s: %s", LOG_VERBOSITY_ENV, exc)


if __name__ == "__main__":
    raise SystemExit(main())
