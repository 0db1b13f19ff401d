"""
dbcore/executor.py
------------------
Generic insert / select / update / delete over the shared connection.

Design Decisions:
    * The verbs keep their fragment-shaped signatures (table, fields,
      option clause, values) but data values are always bound with ``?``
      placeholders. Option clauses are structural text only; their values
      travel in ``params``.
    * Table and column names are validated against a plain identifier
      pattern and double-quoted. Anything else is rejected with
      ``ValueError`` before SQL reaches the engine.
    * Every verb lazily opens the connection and goes through the retry
      policy. Once the policy gives up the caller receives a failed
      ``OperationResult`` holding an ``ExecError``; nothing is raised.
"""
from __future__ import annotations

import re
from typing import Any, Callable, Mapping, Sequence, TypeVar

from dbcore.connection import ConnectionController
from dbcore.engine import RowCursor
from dbcore.errors import ExecError
from dbcore.retry import OperationResult
from logger import get_logger

log = get_logger(__name__)

T = TypeVar("T")

Fields = str | Sequence[str]

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_SET_RE = re.compile(r"^\s*SET\b", re.IGNORECASE)
_WHERE_RE = re.compile(r"^\s*WHERE\b", re.IGNORECASE)
_CREATE_RE = re.compile(r"^\s*CREATE\s", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Statement builders
# ---------------------------------------------------------------------------

def quote_identifier(name: str) -> str:
    """
    Validate and double-quote a table or column name.

    Raises:
        ValueError: If *name* is not a plain identifier.
    """
    stripped = name.strip() if isinstance(name, str) else name
    if not isinstance(stripped, str) or not _IDENTIFIER_RE.match(stripped):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{stripped}"'


def split_fields(fields: Fields) -> list[str]:
    """Turn ``"a, b"`` or ``["a", "b"]`` into a list of column names."""
    if isinstance(fields, str):
        parts = [f.strip() for f in fields.split(",")]
    else:
        parts = [str(f).strip() for f in fields]
    parts = [p for p in parts if p]
    if not parts:
        raise ValueError("At least one field is required.")
    return parts


def _check_clause(clause: str) -> str:
    clause = (clause or "").strip()
    if ";" in clause:
        raise ValueError("Option clauses must not contain ';'. Bind values through params.")
    return clause


def build_insert(table: str, fields: Fields, value_count: int) -> str:
    columns = split_fields(fields)
    if value_count != len(columns):
        raise ValueError(
            f"Insert into '{table}' has {len(columns)} field(s) but {value_count} value(s)."
        )
    column_sql = ", ".join(quote_identifier(c) for c in columns)
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {quote_identifier(table)} ({column_sql}) VALUES ({placeholders})"


def build_select(fields: Fields, table: str, options: str = "") -> str:
    columns = [c if c == "*" else quote_identifier(c) for c in split_fields(fields)]
    sql = f"SELECT {', '.join(columns)} FROM {quote_identifier(table)}"
    options = _check_clause(options)
    return f"{sql} {options}" if options else sql


def build_update(
    table: str,
    changes: Mapping[str, Any] | str,
    options: str = "",
    params: Sequence[Any] = (),
) -> tuple[str, list[Any]]:
    """
    Build an UPDATE.

    *changes* is either ``{column: value}`` or a SET clause with
    placeholders whose values lead *params*.
    """
    if isinstance(changes, str):
        set_clause = _check_clause(changes)
        if not set_clause:
            raise ValueError("SET clause must not be empty.")
        if not _SET_RE.match(set_clause):
            set_clause = f"SET {set_clause}"
        bound = list(params)
    else:
        if not changes:
            raise ValueError("At least one column must be updated.")
        set_clause = "SET " + ", ".join(f"{quote_identifier(c)} = ?" for c in changes)
        bound = list(changes.values()) + list(params)
    sql = f"UPDATE {quote_identifier(table)} {set_clause}"
    options = _check_clause(options)
    return (f"{sql} {options}" if options else sql), bound


def build_delete(table: str, where: str) -> str:
    predicate = _check_clause(where)
    predicate = _WHERE_RE.sub("", predicate, count=1).strip()
    if not predicate:
        raise ValueError("Delete requires a WHERE predicate.")
    return f"DELETE FROM {quote_identifier(table)} WHERE {predicate}"


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class CommandExecutor:
    """
    CRUD dispatch over a :class:`ConnectionController`.

    Example::

        executor = CommandExecutor(controller)
        row_id = executor.insert("users", "name", ("Alice",)).unwrap()
        with executor.select("name", "users", "WHERE id = ?", (row_id,)).unwrap() as rows:
            print(rows.fetchone()["name"])
    """

    def __init__(self, controller: ConnectionController) -> None:
        self._controller = controller

    @property
    def controller(self) -> ConnectionController:
        return self._controller

    def _run(
        self,
        description: str,
        sql: str,
        operation: Callable[[Any], T],
    ) -> OperationResult[T]:
        log.debug("%s | SQL: %.500s", description, sql)
        return self._controller.run(
            operation,
            description,
            lambda exc: ExecError(f"{description} failed: {exc}", sql=sql),
        )

    # ------------------------------------------------------------------
    # CRUD verbs
    # ------------------------------------------------------------------

    def insert(self, table: str, fields: Fields, values: Sequence[Any]) -> OperationResult[int]:
        """
        Insert one row and return its row id.

        Args:
            table:  Target table.
            fields: Column names, comma-separated or as a sequence.
            values: Values in the same order as *fields*.
        """
        values = list(values)
        sql = build_insert(table, fields, len(values))
        engine = self._controller.engine

        # Single statement per attempt: a retry never re-applies a committed row.
        return self._run(
            f"Inserting into '{table}'",
            sql,
            lambda handle: engine.execute_insert(handle, sql, values),
        )

    def select(
        self,
        fields: Fields,
        table: str,
        options: str = "",
        params: Sequence[Any] = (),
    ) -> OperationResult[RowCursor]:
        """
        Select rows; the returned cursor must be closed by the caller.

        Args:
            fields:  Column names or ``"*"``.
            table:   Source table.
            options: Trailing clause, e.g. ``"WHERE id = ? ORDER BY name"``.
            params:  Values for the placeholders in *options*.
        """
        sql = build_select(fields, table, options)
        engine = self._controller.engine
        bound = list(params)
        return self._run(
            f"Selecting from '{table}'",
            sql,
            lambda handle: engine.execute_reader(handle, sql, bound),
        )

    def update(
        self,
        table: str,
        changes: Mapping[str, Any] | str,
        options: str = "",
        params: Sequence[Any] = (),
    ) -> OperationResult[None]:
        """
        Update rows.

        Args:
            table:   Table to update.
            changes: ``{column: value}`` or a SET clause with placeholders.
            options: Trailing clause, typically ``"WHERE id = ?"``.
            params:  Placeholder values (SET clause values first).
        """
        sql, bound = build_update(table, changes, options, params)
        engine = self._controller.engine

        def _update(handle: Any) -> None:
            engine.execute(handle, sql, bound)

        return self._run(f"Updating '{table}'", sql, _update)

    def delete(self, table: str, where: str, params: Sequence[Any] = ()) -> OperationResult[None]:
        """
        Delete the rows matching *where* (a leading ``WHERE`` is optional).

        Raises:
            ValueError: If *where* is empty.
        """
        sql = build_delete(table, where)
        engine = self._controller.engine
        bound = list(params)

        def _delete(handle: Any) -> None:
            engine.execute(handle, sql, bound)

        return self._run(f"Deleting from '{table}'", sql, _delete)

    # ------------------------------------------------------------------
    # Schema helpers
    # ------------------------------------------------------------------

    def create_table(self, statement: str) -> OperationResult[None]:
        """
        Create one table with retry; ``"users (id ...)"`` gets ``CREATE TABLE``
        prefixed.
        """
        sql = statement.strip()
        if not _CREATE_RE.match(sql):
            sql = f"CREATE TABLE {sql}"
        engine = self._controller.engine

        def _create(handle: Any) -> None:
            engine.execute(handle, sql)

        return self._run("Creating table", sql, _create)

    def list_tables(self) -> list[str]:
        """Return live table names (empty list if they cannot be read)."""
        engine = self._controller.engine
        result = self._controller.run(engine.list_tables, "Listing tables")
        if not result.ok:
            log.warning("Could not list tables: %s", result.error)
            return []
        return sorted(result.value or [])

    def table_exists(self, table: str) -> bool:
        return table in self.list_tables()

    def count_rows(self, table: str) -> int:
        """Return the row count for *table*, 0 if it cannot be counted."""
        sql = f"SELECT COUNT(*) FROM {quote_identifier(table)}"
        engine = self._controller.engine
        result = self._run(
            f"Counting rows in '{table}'",
            sql,
            lambda handle: engine.execute_scalar(handle, sql),
        )
        return int(result.value or 0) if result.ok else 0
