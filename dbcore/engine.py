"""
dbcore/engine.py
----------------
The embedded database engine as seen by the manager.

The manager only needs a handful of capabilities from the engine: open a
file, create an empty file, execute a statement, read a scalar, read rows
and close. ``Engine`` names that capability set; ``SQLiteEngine`` provides it
on top of the standard library ``sqlite3`` module. Tests substitute engines
that fail on demand.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Iterator, Protocol, Sequence

from logger import get_logger

log = get_logger(__name__)

Params = Sequence[Any]


class RowCursor:
    """
    Forward-only, single-pass cursor over the rows of one SELECT.

    The caller owns the cursor and must close it (or use it as a context
    manager). Rows are ``sqlite3.Row`` objects, indexable by position or
    column name.
    """

    def __init__(self, cursor: sqlite3.Cursor) -> None:
        self._cursor = cursor
        self._closed = False

    @property
    def columns(self) -> list[str]:
        description = self._cursor.description or ()
        return [col[0] for col in description]

    @property
    def closed(self) -> bool:
        return self._closed

    def fetchone(self) -> sqlite3.Row | None:
        return self._cursor.fetchone()

    def fetchall(self) -> list[sqlite3.Row]:
        return self._cursor.fetchall()

    def __iter__(self) -> Iterator[sqlite3.Row]:
        return self

    def __next__(self) -> sqlite3.Row:
        row = self._cursor.fetchone()
        if row is None:
            raise StopIteration
        return row

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._cursor.close()

    def __enter__(self) -> "RowCursor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


class Engine(Protocol):  # pragma: no cover - structural typing helper
    """Capabilities the manager requires from an embedded engine."""

    error_types: tuple[type[BaseException], ...]

    def open(self, path: Path) -> Any: ...

    def create_file(self, path: Path) -> None: ...

    def execute(self, handle: Any, sql: str, params: Params = ()) -> int: ...

    def execute_insert(self, handle: Any, sql: str, params: Params = ()) -> int: ...

    def execute_scalar(self, handle: Any, sql: str, params: Params = ()) -> Any: ...

    def execute_reader(self, handle: Any, sql: str, params: Params = ()) -> RowCursor: ...

    def list_tables(self, handle: Any) -> list[str]: ...

    def close(self, handle: Any) -> None: ...


class SQLiteEngine:
    """
    ``sqlite3`` implementation of :class:`Engine`.

    Connections run in autocommit mode (``isolation_level=None``) so each
    statement is durable once it returns; explicit transactions are opened
    with ``BEGIN`` by the connection controller.
    """

    error_types: tuple[type[BaseException], ...] = (sqlite3.Error, OSError)

    def __init__(self, timeout: float = 5.0, check_same_thread: bool = False) -> None:
        self._timeout = timeout
        self._check_same_thread = check_same_thread

    def open(self, path: Path) -> sqlite3.Connection:
        if Path(path).is_dir():
            raise sqlite3.OperationalError(f"Path points to a directory, expected file: {path}")
        conn = sqlite3.connect(
            str(path),
            timeout=self._timeout,
            check_same_thread=self._check_same_thread,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as exc:
            log.warning("Could not enable foreign keys on '%s': %s", path, exc)
        return conn

    def create_file(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        # A zero-byte file is a valid, empty SQLite database.
        path.touch(exist_ok=False)

    def execute(self, handle: sqlite3.Connection, sql: str, params: Params = ()) -> int:
        cursor = handle.execute(sql, tuple(params))
        try:
            return cursor.rowcount
        finally:
            cursor.close()

    def execute_insert(self, handle: sqlite3.Connection, sql: str, params: Params = ()) -> int:
        """Run one INSERT and return the row id that statement produced."""
        cursor = handle.execute(sql, tuple(params))
        try:
            return int(cursor.lastrowid)
        finally:
            cursor.close()

    def execute_scalar(self, handle: sqlite3.Connection, sql: str, params: Params = ()) -> Any:
        cursor = handle.execute(sql, tuple(params))
        try:
            row = cursor.fetchone()
            return row[0] if row is not None else None
        finally:
            cursor.close()

    def execute_reader(self, handle: sqlite3.Connection, sql: str, params: Params = ()) -> RowCursor:
        return RowCursor(handle.execute(sql, tuple(params)))

    def list_tables(self, handle: sqlite3.Connection) -> list[str]:
        cursor = handle.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        try:
            return [row[0] for row in cursor.fetchall()]
        finally:
            cursor.close()

    def close(self, handle: sqlite3.Connection) -> None:
        handle.close()
