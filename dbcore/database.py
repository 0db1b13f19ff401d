"""
dbcore/database.py
------------------
``DatabaseManager``: one object tying together the connection, the declared
schema, CRUD execution and backups for a single SQLite file.

Design Decisions:
    * The manager is a thin facade; each concern lives in its own component
      (``ConnectionController``, ``SchemaRegistry``, ``CommandExecutor``,
      ``FileBackupManager``) which can also be used on its own.
    * Everything is injected: config, retry policy and engine. Nothing is a
      process-wide singleton, so independent managers can coexist.
    * ``DatabaseManager`` is a context manager so callers can use it with
      ``with`` statements and be guaranteed the connection is closed on exit.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Sequence

from config import CONFIG, AppConfig, DatabaseConfig
from dbcore.backup import FileBackupManager
from dbcore.connection import ConnectionController
from dbcore.engine import Engine, RowCursor
from dbcore.executor import CommandExecutor, Fields
from dbcore.retry import OperationResult, RetryPolicy
from dbcore.schema_registry import ReconcileReport, SchemaRegistry
from logger import get_logger
from models.records import BackupRecord, TableSpec

log = get_logger(__name__)


class DatabaseManager:
    """
    Manager for a single SQLite database file.

    Example::

        with DatabaseManager(DatabaseConfig(app_path=Path("data"))) as db:
            db.add_table("users", "(id INTEGER PRIMARY KEY, name TEXT)")
            db.create_all_tables()
            user_id = db.insert_into_table("users", "name", ("Alice",)).unwrap()
            with db.select_from_table("name", "users", "WHERE id = ?", (user_id,)).unwrap() as rows:
                print(rows.fetchone()["name"])
    """

    def __init__(
        self,
        config: DatabaseConfig | None = None,
        policy: RetryPolicy | None = None,
        engine: Engine | None = None,
        backup_dir_name: str | None = None,
        make_database: bool = False,
        retention_days: int | None = None,
    ) -> None:
        self._config = config or CONFIG.db
        self.retention_days = (
            CONFIG.backup.retention_days if retention_days is None else retention_days
        )
        self.connection = ConnectionController(self._config, engine=engine, policy=policy)
        self.schema = SchemaRegistry()
        self.executor = CommandExecutor(self.connection)
        self.backups = FileBackupManager(
            db_file_name=self._config.file_name,
            dir_name=backup_dir_name or CONFIG.backup.dir_name,
        )
        if make_database and not self.database_exists():
            if not self.create_database().ok:
                log.error("Cannot create database file '%s'.", self.path)

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: AppConfig = CONFIG,
        policy: RetryPolicy | None = None,
        make_database: bool = False,
    ) -> "DatabaseManager":
        """Convenience factory using values from the application config."""
        return cls(
            config=config.db,
            policy=policy or RetryPolicy.from_config(),
            backup_dir_name=config.backup.dir_name,
            make_database=make_database,
            retention_days=config.backup.retention_days,
        )

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "DatabaseManager":
        self.open_connection()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            log.warning("Unhandled exception in DatabaseManager context: %s", exc_val)
        self.close_connection()
        return False  # Never suppress exceptions

    @property
    def path(self) -> Path:
        return self._config.database_path

    @property
    def app_path(self) -> Path:
        return Path(self._config.app_path)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def open_connection(self) -> OperationResult[None]:
        return self.connection.ensure_open()

    def close_connection(self) -> None:
        self.connection.close()

    def database_exists(self) -> bool:
        return self.connection.database_exists()

    def create_database(self) -> OperationResult[None]:
        return self.connection.create_database_file()

    def transaction(self):
        return self.connection.transaction()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def add_table(self, name: str, creation_statement: str) -> TableSpec:
        return self.schema.register(name, creation_statement)

    def create_all_tables(self) -> ReconcileReport:
        return self.schema.reconcile_all(self.connection)

    def tables_are_verified(self) -> bool:
        return self.schema.verify_all(self.connection)

    def create_table(self, statement: str) -> OperationResult[None]:
        return self.executor.create_table(statement)

    def list_tables(self) -> list[str]:
        return self.executor.list_tables()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def insert_into_table(
        self, table: str, fields: Fields, values: Sequence[Any]
    ) -> OperationResult[int]:
        return self.executor.insert(table, fields, values)

    def select_from_table(
        self, fields: Fields, table: str, options: str = "", params: Sequence[Any] = ()
    ) -> OperationResult[RowCursor]:
        return self.executor.select(fields, table, options, params)

    def update_table(
        self,
        table: str,
        changes: Mapping[str, Any] | str,
        options: str = "",
        params: Sequence[Any] = (),
    ) -> OperationResult[None]:
        return self.executor.update(table, changes, options, params)

    def delete_from_table(
        self, table: str, where: str, params: Sequence[Any] = ()
    ) -> OperationResult[None]:
        return self.executor.delete(table, where, params)

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def create_backup(self, file_name: str | None = None) -> Path | None:
        return self.backups.backup(self.app_path, file_name)

    def restore_backup(self, file_name: str) -> Path:
        """
        Restore a backup over the live file.

        The connection is closed first so the engine does not keep writing
        to the replaced file; the next operation re-opens it.
        """
        self.close_connection()
        return self.backups.restore(self.app_path, file_name)

    def purge_backups(self, day_limit: int | None = None) -> list[str]:
        limit = self.retention_days if day_limit is None else day_limit
        return self.backups.purge(self.app_path, limit)

    def get_most_recent_backup(self) -> str | None:
        return self.backups.most_recent(self.app_path)

    def list_backups(self) -> list[BackupRecord]:
        return self.backups.list_backups(self.app_path)
