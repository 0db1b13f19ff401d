"""
dbcore/errors.py
----------------
Error taxonomy shared by every component of the manager.

Connection, creation and execution errors are normally carried inside an
``OperationResult`` once the retry policy gives up; the remaining errors are
raised directly.
"""
from __future__ import annotations


class DatabaseError(Exception):
    """Raised for database-level failures reported by this package."""


class ConnectionLostError(DatabaseError):
    """Raised when an operation needs an open handle and none is available."""


class DatabaseConnectionError(DatabaseError):
    """Opening the database file failed (missing engine, locked or corrupt file)."""


class DatabaseCreationError(DatabaseError):
    """Creating the database file failed (permissions, disk full)."""


class SchemaError(DatabaseError):
    """A single CREATE TABLE statement failed during reconciliation."""

    def __init__(self, table_name: str, message: str) -> None:
        super().__init__(f"Could not create table '{table_name}': {message}")
        self.table_name = table_name


class ExecError(DatabaseError):
    """A CRUD statement failed."""

    def __init__(self, message: str, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql


class BackupIOError(DatabaseError):
    """Filesystem failure while creating, restoring or purging backups."""


class DuplicateTableError(DatabaseError):
    """A table name was registered twice."""

    def __init__(self, table_name: str) -> None:
        super().__init__(f"Table '{table_name}' is already registered.")
        self.table_name = table_name
