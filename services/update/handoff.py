"""Hand an update over to the separate updater process and act on its result.

A running application cannot overwrite its own executable, so the caller
side encodes an :class:`UpdateRequest` into command-line arguments, starts
the updater detached from itself and is expected to exit straight away.
The updater side decodes those arguments, runs :meth:`UpdateEngine.update`
and then reports success, stays silent or relaunches the application.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable, Sequence

from services.update.arguments import decode_request, encode_request, join_arguments, split_arguments
from services.update.engine import UpdateEngine, UpdateTransaction
from services.update.errors import (
    MissingExecutableError,
    NetworkError,
    UnknownBehaviorError,
    UpdateError,
    UpdaterNotInstalledError,
    ValidationError,
    describe_error_chain,
)
from services.update.layout import InstallLayout, executable_name
from services.update.models import AppDescriptor, Credentials, UpdateRequest, UpdaterBehavior
from services.update.reporting import UpdateReporter

_LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UPDATE_FAILED = 1
EXIT_INVALID_ARGUMENTS = 2

Popen = Callable[..., Any]


def launch_detached(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    popen: Popen = subprocess.Popen,
) -> Any:
    """Start ``command`` without tying its lifetime to the current process."""

    popen_kwargs: dict[str, Any] = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
        "close_fds": True,
    }
    if os.name == "nt":  # pragma: no cover - exercised on Windows
        creationflags = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
            subprocess, "CREATE_NEW_PROCESS_GROUP", 0
        )
        if creationflags:
            popen_kwargs["creationflags"] = creationflags
    else:
        popen_kwargs["start_new_session"] = True
    try:
        return popen(list(command), cwd=str(cwd) if cwd else None, **popen_kwargs)
    except OSError as exc:
        raise UpdateError(f"Failed to start {Path(command[0]).name}: {exc}") from exc


class HandoffOrchestrator:
    """Caller side: start the updater for an application and return immediately."""

    def __init__(
        self,
        layout: InstallLayout,
        updater: AppDescriptor | None,
        *,
        popen: Popen = subprocess.Popen,
        exit_after_launch: bool = False,
    ) -> None:
        self._layout = layout
        self._updater = updater
        self._popen = popen
        self._exit_after_launch = exit_after_launch

    def build_command(
        self,
        app: AppDescriptor,
        behavior: UpdaterBehavior = UpdaterBehavior.RUN_AFTER_UPDATE,
        credentials: Credentials | None = None,
        *,
        caller_arguments: Sequence[str] | None = None,
    ) -> list[str]:
        if self._updater is None:
            raise UpdaterNotInstalledError("The updater was not successfully installed.")
        executable = self._layout.find_executable(self._updater)
        if executable is None:
            raise UpdaterNotInstalledError(
                f"The updater executable '{executable_name(self._updater.name)}' could not be found."
            )
        if caller_arguments is None:
            caller_arguments = sys.argv[1:]
        request = UpdateRequest(
            app=app,
            behavior=behavior,
            credentials=credentials,
            relaunch_arguments=join_arguments(caller_arguments) or None,
        )
        return [str(executable), *encode_request(request)]

    def run(
        self,
        app: AppDescriptor,
        behavior: UpdaterBehavior = UpdaterBehavior.RUN_AFTER_UPDATE,
        credentials: Credentials | None = None,
        *,
        caller_arguments: Sequence[str] | None = None,
    ) -> Any:
        """Start the updater for ``app``.

        When ``app`` is the running application it should shut down right
        after this call returns.
        """

        command = self.build_command(
            app, behavior, credentials, caller_arguments=caller_arguments
        )
        _LOGGER.info(
            "Starting updater for %s %s (behavior=%s)",
            app.name,
            app.latest_version,
            behavior.name,
        )
        process = launch_detached(command, cwd=Path(command[0]).parent, popen=self._popen)
        if self._exit_after_launch:
            logging.shutdown()
            os._exit(0)
        return process


class UpdaterRunner:
    """Updater side: decode the handoff arguments and drive the update."""

    def __init__(
        self,
        layout: InstallLayout,
        reporter: UpdateReporter,
        *,
        engine: UpdateEngine | None = None,
        popen: Popen = subprocess.Popen,
    ) -> None:
        self._layout = layout
        self._reporter = reporter
        self._engine = engine or UpdateEngine(layout)
        self._popen = popen

    def run(self, arguments: Sequence[str]) -> int:
        try:
            request = decode_request(arguments)
        except ValidationError as exc:
            _LOGGER.error("Rejected updater arguments: %s", exc)
            self._report_error("Error", exc, _peek_behavior(arguments))
            return EXIT_INVALID_ARGUMENTS

        app = request.app
        try:
            self.perform_update(request)
        except NetworkError as exc:
            self._report_error(
                f"There was a problem with the internet connection while updating {app.name}",
                exc,
                request.behavior,
            )
            return EXIT_UPDATE_FAILED
        except Exception as exc:
            if not isinstance(exc, UpdateError):
                _LOGGER.exception("Unexpected error while updating %s", app.name)
            self._report_error(f"There was an error while updating {app.name}", exc, request.behavior)
            return EXIT_UPDATE_FAILED

        if request.behavior is UpdaterBehavior.SHOW_MESSAGES:
            self._reporter.show_message("Update finished", f"{app.name} was successfully updated!")
        elif request.behavior is UpdaterBehavior.RUN_AFTER_UPDATE:
            try:
                self.relaunch(request)
            except UpdateError as exc:
                self._report_error(
                    f"There was an error while trying to run the updated version of {app.name}",
                    exc,
                    request.behavior,
                )
                return EXIT_UPDATE_FAILED
        return EXIT_OK

    def perform_update(self, request: UpdateRequest) -> UpdateTransaction:
        self._reporter.started(request.app)
        task = self._engine.start_update(request.app, request.credentials)
        for progress in task.progress():
            self._reporter.progress(progress)
        return task.result()

    def relaunch(self, request: UpdateRequest) -> Any:
        app = request.app
        executable = self._layout.find_executable(app)
        if executable is None:
            raise MissingExecutableError(
                f"The executable file '{executable_name(app.name)}' could not be found."
            )
        arguments = split_arguments(request.relaunch_arguments)
        _LOGGER.info("Relaunching %s", executable)
        return launch_detached([str(executable), *arguments], cwd=executable.parent, popen=self._popen)

    def _report_error(
        self, initial_message: str, error: BaseException, behavior: UpdaterBehavior
    ) -> None:
        if not behavior.shows_messages:
            return
        self._reporter.show_error("Error", describe_error_chain(initial_message, error))


def _peek_behavior(arguments: Sequence[str]) -> UpdaterBehavior:
    if len(arguments) > 5:
        try:
            return UpdaterBehavior.parse(arguments[5])
        except UnknownBehaviorError:
            pass
    return UpdaterBehavior.SHOW_MESSAGES


__all__ = [
    "EXIT_INVALID_ARGUMENTS",
    "EXIT_OK",
    "EXIT_UPDATE_FAILED",
    "HandoffOrchestrator",
    "UpdaterRunner",
    "launch_detached",
]
