"""dbcore/__init__.py"""
from dbcore.errors import (
    DatabaseError,
    ConnectionLostError,
    DatabaseConnectionError,
    DatabaseCreationError,
    SchemaError,
    ExecError,
    BackupIOError,
    DuplicateTableError,
)
from dbcore.retry import (
    Decision,
    OperationResult,
    RetryPolicy,
    always_abandon,
    always_retry,
    console_decider,
)
from dbcore.engine import Engine, RowCursor, SQLiteEngine
from dbcore.connection import ConnectionController
from dbcore.schema_registry import SchemaRegistry, ReconcileReport
from dbcore.executor import CommandExecutor, quote_identifier
from dbcore.backup import FileBackupManager
from dbcore.database import DatabaseManager

__all__ = [
    "DatabaseError",
    "ConnectionLostError",
    "DatabaseConnectionError",
    "DatabaseCreationError",
    "SchemaError",
    "ExecError",
    "BackupIOError",
    "DuplicateTableError",
    "Decision",
    "OperationResult",
    "RetryPolicy",
    "always_abandon",
    "always_retry",
    "console_decider",
    "Engine",
    "RowCursor",
    "SQLiteEngine",
    "ConnectionController",
    "SchemaRegistry",
    "ReconcileReport",
    "CommandExecutor",
    "quote_identifier",
    "FileBackupManager",
    "DatabaseManager",
]
