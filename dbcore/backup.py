"""
dbcore/backup.py
----------------
Snapshots, restores and retention for the database file.

Layout::

    <app_path>/database.sqlite          live database
    <app_path>/backups/1760000000.sqlite
    <app_path>/backups/before-import.sqlite

Design Decisions:
    * There is no catalog: the backups directory listing, filtered by the
      database file extension, is the source of truth.
    * A backup's creation time is the file's modification time. Backups
      are written once with ``shutil.copyfile`` (which stamps the copy with
      the current time) and never modified afterwards.
    * Filesystem errors are raised as ``BackupIOError``; nothing here goes
      through the retry policy. Callers should pause writers while a backup
      or restore runs.
"""
from __future__ import annotations

import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from config import CONFIG, AppConfig
from dbcore.errors import BackupIOError
from logger import get_logger
from models.records import BackupRecord

log = get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileBackupManager:
    """
    Backup subsystem for one database file name.

    Example::

        backups = FileBackupManager("database.sqlite")
        backups.backup(app_path)                      # 1760000000.sqlite
        backups.backup(app_path, "before-import.sqlite")
        backups.purge(app_path, day_limit=30)
        latest = backups.most_recent(app_path)
    """

    def __init__(
        self,
        db_file_name: str = "database.sqlite",
        dir_name: str = "backups",
        clock: Clock = _utcnow,
    ) -> None:
        self._db_file_name = db_file_name
        self._dir_name = dir_name
        self._extension = Path(db_file_name).suffix or ".sqlite"
        self._clock = clock

    @classmethod
    def from_config(cls, config: AppConfig = CONFIG) -> "FileBackupManager":
        return cls(db_file_name=config.db.file_name, dir_name=config.backup.dir_name)

    @property
    def extension(self) -> str:
        return self._extension

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def backup_dir(self, app_path: Path | str) -> Path:
        return Path(app_path) / self._dir_name

    def database_path(self, app_path: Path | str) -> Path:
        return Path(app_path) / self._db_file_name

    def default_name(self) -> str:
        """Whole UTC seconds since the epoch plus the database extension."""
        return f"{int(self._clock().timestamp())}{self._extension}"

    def _check_name(self, file_name: str) -> str:
        if not file_name or Path(file_name).name != file_name or file_name in (".", ".."):
            raise ValueError(f"Backup name must be a plain file name: {file_name!r}")
        # Listing, purge and most_recent only see files with this suffix.
        if Path(file_name).suffix != self._extension:
            raise ValueError(
                f"Backup name must end with '{self._extension}': {file_name!r}"
            )
        return file_name

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def backup(self, app_path: Path | str, file_name: str | None = None) -> Path | None:
        """
        Copy the live database into the backups directory.

        An existing backup with the same name is overwritten. If there is no
        live database file nothing is copied and ``None`` is returned.

        Raises:
            BackupIOError: On any filesystem failure.
            ValueError:    If *file_name* is not a plain name with the database
                           extension.
        """
        name = self._check_name(file_name) if file_name else self.default_name()
        source = self.database_path(app_path)
        target = self.backup_dir(app_path) / name
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if not source.is_file():
                log.warning("No database file at '%s'; backup '%s' skipped.", source, name)
                return None
            shutil.copyfile(source, target)
        except OSError as exc:
            raise BackupIOError(f"Could not back up '{source}' to '{target}': {exc}") from exc
        log.info("Created backup '%s'.", target)
        return target

    def restore(self, app_path: Path | str, file_name: str) -> Path:
        """
        Replace the live database with the named backup.

        A safety backup of the current database is taken first under the
        default name. If that name collides with *file_name* the safety copy
        is written as ``<stem>-pre-restore<ext>`` instead.

        Raises:
            BackupIOError: If the backup is missing or a copy fails.
        """
        self._check_name(file_name)
        source = self.backup_dir(app_path) / file_name
        target = self.database_path(app_path)
        if not source.is_file():
            raise BackupIOError(f"Backup '{file_name}' not found in '{source.parent}'.")

        safety_name = self.default_name()
        if safety_name == file_name:
            safety_name = f"{Path(safety_name).stem}-pre-restore{self._extension}"
            log.warning("Safety backup name collides with '%s'; using '%s'.", file_name, safety_name)
        self.backup(app_path, safety_name)

        try:
            shutil.copyfile(source, target)
        except OSError as exc:
            raise BackupIOError(f"Could not restore '{source}' to '{target}': {exc}") from exc
        log.info("Restored '%s' from backup '%s'.", target, file_name)
        return target

    def list_backups(self, app_path: Path | str) -> list[BackupRecord]:
        """Backups in the backups directory, oldest first."""
        directory = self.backup_dir(app_path)
        if not directory.is_dir():
            return []
        records: list[BackupRecord] = []
        try:
            for entry in directory.iterdir():
                if entry.suffix != self._extension or not entry.is_file():
                    continue
                created = datetime.fromtimestamp(entry.stat().st_mtime, tz=timezone.utc)
                records.append(BackupRecord(name=entry.name, path=entry, created_at=created))
        except OSError as exc:
            raise BackupIOError(f"Could not list backups in '{directory}': {exc}") from exc
        return sorted(records, key=lambda r: (r.created_at, r.name))

    def purge(self, app_path: Path | str, day_limit: int) -> list[str]:
        """
        Delete every backup at least *day_limit* days old.

        ``purge(path, 0)`` removes all backups; a very large limit removes
        none. Only the top level of the backups directory is considered.

        Returns:
            Names of the deleted backups.
        """
        if day_limit < 0:
            raise ValueError("day_limit must not be negative")
        now = self._clock()
        deleted: list[str] = []
        for record in self.list_backups(app_path):
            if record.age_days(now) < day_limit:
                continue
            try:
                record.path.unlink()
            except OSError as exc:
                raise BackupIOError(f"Could not delete backup '{record.path}': {exc}") from exc
            deleted.append(record.name)
            log.debug("Purged backup '%s'.", record.name)
        if deleted:
            log.info("Purged %d backup(s) older than %d day(s).", len(deleted), day_limit)
        return deleted

    def most_recent(self, app_path: Path | str) -> str | None:
        """Name of the newest backup, or ``None`` if there are none."""
        records = self.list_backups(app_path)
        return records[-1].name if records else None
