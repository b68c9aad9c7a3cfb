"""Install and update flows that mutate an application's directory."""

from __future__ import annotations

import logging
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path

from services.update.archive import extract_archive
from services.update.constants import BACKUP_SUFFIX
from services.update.downloader import Downloader
from services.update.errors import IOTransferError
from services.update.layout import InstallLayout
from services.update.models import AppDescriptor, Credentials, TransactionOutcome
from services.update.tasks import BackgroundTask, ProgressCallback
from services.update.transactions import (
    SearchDepth,
    add_suffix_to_all,
    delete_all_with_suffix,
    delete_all_without_suffix,
    remove_suffix_from_all,
)


_LOGGER = logging.getLogger(__name__)


@dataclass
class UpdateTransaction:
    """Bookkeeping for a single install or update of one directory."""

    app: AppDescriptor
    target: Path
    backup_suffix: str
    renamed: list[Path] = field(default_factory=list)
    outcome: TransactionOutcome = TransactionOutcome.PENDING


class UpdateEngine:
    """Download, verify, back up, extract and then commit or roll back.

    Every exit path removes the scratch directory.  Errors are re-raised only
    after the rollback for the failed step has run, so the caller never sees
    an error while the directory is still half-updated.
    """

    def __init__(
        self,
        layout: InstallLayout,
        downloader: Downloader | None = None,
        *,
        backup_suffix: str = BACKUP_SUFFIX,
    ) -> None:
        self._layout = layout
        self._downloader = downloader or Downloader(layout)
        self._backup_suffix = backup_suffix
        self._last_transaction: UpdateTransaction | None = None

    @property
    def layout(self) -> InstallLayout:
        return self._layout

    @property
    def last_transaction(self) -> UpdateTransaction | None:
        return self._last_transaction

    def install(
        self,
        app: AppDescriptor,
        credentials: Credentials | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> UpdateTransaction:
        """Install ``app`` into a fresh directory."""

        transaction = self._begin(app)
        _LOGGER.info(
            "Installing %s %s into %s", app.name, app.latest_version, transaction.target
        )
        try:
            self._layout.delete_temp()
            archive = self._downloader.download(
                app, credentials, on_progress=on_progress, cancel_event=cancel_event
            )
            try:
                extract_archive(archive, transaction.target)
            except Exception:
                _LOGGER.error("Extraction failed; discarding %s", transaction.target)
                shutil.rmtree(transaction.target, ignore_errors=True)
                raise
        except Exception as exc:
            self._fail(transaction, exc)
            raise

        transaction.outcome = TransactionOutcome.COMMITTED
        self._layout.delete_temp()
        _LOGGER.info("Installed %s %s", app.name, app.latest_version)
        return transaction

    def update(
        self,
        app: AppDescriptor,
        credentials: Credentials | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> UpdateTransaction:
        """Replace the installed files of ``app`` with its latest version."""

        transaction = self._begin(app)
        _LOGGER.info(
            "Updating %s from %s to %s",
            app.name,
            app.installed_version or "an unknown version",
            app.latest_version,
        )
        try:
            self._layout.delete_temp()
            stale = delete_all_with_suffix(
                transaction.target, self._backup_suffix, SearchDepth.TOP_LEVEL
            )
            if stale:
                _LOGGER.warning(
                    "Removed %s backup entries left over from a previous update attempt",
                    len(stale),
                )
            archive = self._downloader.download(
                app, credentials, on_progress=on_progress, cancel_event=cancel_event
            )
            self._back_up(transaction)
            self._extract(transaction, archive)
            self._commit(transaction)
        except Exception as exc:
            self._fail(transaction, exc)
            raise

        self._layout.delete_temp()
        _LOGGER.info("Updated %s to %s", app.name, app.latest_version)
        return transaction

    def start_install(
        self, app: AppDescriptor, credentials: Credentials | None = None
    ) -> BackgroundTask[UpdateTransaction]:
        def work(on_progress: ProgressCallback, cancel_event: threading.Event) -> UpdateTransaction:
            return self.install(
                app, credentials, on_progress=on_progress, cancel_event=cancel_event
            )

        return BackgroundTask(work, name=f"install-{app.name}").start()

    def start_update(
        self, app: AppDescriptor, credentials: Credentials | None = None
    ) -> BackgroundTask[UpdateTransaction]:
        def work(on_progress: ProgressCallback, cancel_event: threading.Event) -> UpdateTransaction:
            return self.update(
                app, credentials, on_progress=on_progress, cancel_event=cancel_event
            )

        return BackgroundTask(work, name=f"update-{app.name}").start()

    def _begin(self, app: AppDescriptor) -> UpdateTransaction:
        target = self._layout.app_directory(app, create=True)
        assert target is not None
        transaction = UpdateTransaction(app, target, self._backup_suffix)
        self._last_transaction = transaction
        return transaction

    def _back_up(self, transaction: UpdateTransaction) -> None:
        _LOGGER.info("Backing up current files in %s", transaction.target)
        try:
            transaction.renamed = add_suffix_to_all(
                transaction.target,
                transaction.backup_suffix,
                SearchDepth.TOP_LEVEL,
                transaction.app.ignored_directories,
            )
        except IOTransferError:
            _LOGGER.error("Backup failed; restoring original names in %s", transaction.target)
            self._restore(transaction)
            raise
        _LOGGER.debug("Backed up %s entries", len(transaction.renamed))

    def _extract(self, transaction: UpdateTransaction, archive: Path) -> None:
        try:
            extract_archive(archive, transaction.target, transaction.app.ignored_directories)
        except Exception:
            _LOGGER.error("Extraction failed; rolling back %s", transaction.target)
            delete_all_without_suffix(
                transaction.target,
                transaction.backup_suffix,
                SearchDepth.TOP_LEVEL,
                transaction.app.ignored_directories,
            )
            self._restore(transaction)
            raise

    def _restore(self, transaction: UpdateTransaction) -> None:
        remove_suffix_from_all(
            transaction.target, transaction.backup_suffix, SearchDepth.TOP_LEVEL
        )
        transaction.outcome = TransactionOutcome.ROLLED_BACK
        _LOGGER.info("Restored the previous files of %s", transaction.app.name)

    def _commit(self, transaction: UpdateTransaction) -> None:
        deleted = delete_all_with_suffix(
            transaction.target, transaction.backup_suffix, SearchDepth.TOP_LEVEL
        )
        transaction.outcome = TransactionOutcome.COMMITTED
        _LOGGER.info("Committed update of %s (%s backups removed)", transaction.app.name, len(deleted))

    def _fail(self, transaction: UpdateTransaction, error: Exception) -> None:
        if transaction.outcome is TransactionOutcome.PENDING:
            transaction.outcome = TransactionOutcome.FAILED
        _LOGGER.error(
            "Changing %s failed (%s): %s",
            transaction.app.name,
            transaction.outcome.value,
            error,
        )
        try:
            self._layout.delete_temp()
        except IOTransferError:
            _LOGGER.warning("Unable to remove temporary files after failure", exc_info=True)


__all__ = ["UpdateEngine", "UpdateTransaction"]
