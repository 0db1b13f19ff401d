"""
dbcore/schema_registry.py
-------------------------
In-memory registry of declared tables and their reconciliation against the
live database.

Design Decisions:
    * Registration is append-only; registering a name twice is a caller
      error and raises ``DuplicateTableError`` immediately.
    * Reconciliation continues past individual failures. A table that cannot
      be created is logged, recorded in the report and skipped; only a
      connection that cannot be opened fails the batch.
    * Only table-name presence is compared. Column drift, renames and drops
      are not detected.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from dbcore.connection import ConnectionController
from dbcore.errors import DatabaseError, DuplicateTableError, SchemaError
from logger import get_logger
from models.records import TableSpec

log = get_logger(__name__)


@dataclass
class ReconcileReport:
    """Outcome of one ``reconcile_all`` pass."""
    created: list[str] = field(default_factory=list)
    existing: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    error: DatabaseError | None = None

    @property
    def ok(self) -> bool:
        """False only when the connection itself could not be established."""
        return self.error is None

    def __str__(self) -> str:
        if self.error is not None:
            return f"Reconciliation failed: {self.error}"
        return (
            f"created={len(self.created)} existing={len(self.existing)} "
            f"skipped={len(self.failed)}"
        )


class SchemaRegistry:
    """
    Mapping of logical table name → creation statement.

    Example::

        registry = SchemaRegistry()
        registry.register("users", "(id INTEGER PRIMARY KEY, name TEXT)")
        report = registry.reconcile_all(controller)
        assert registry.verify_all(controller)
    """

    def __init__(self) -> None:
        self._specs: dict[str, TableSpec] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, name: str, creation_statement: str) -> TableSpec:
        """
        Declare a table.

        Raises:
            DuplicateTableError: If *name* is already registered.
            ValueError:          If the name or statement is empty.
        """
        return self.add(TableSpec(name=name, creation_statement=creation_statement))

    def add(self, spec: TableSpec) -> TableSpec:
        if not spec.name or not spec.name.strip():
            raise ValueError("Table name must not be empty.")
        if not spec.creation_statement or not spec.creation_statement.strip():
            raise ValueError(f"Creation statement for '{spec.name}' must not be empty.")
        if spec.name in self._specs:
            raise DuplicateTableError(spec.name)
        self._specs[spec.name] = spec
        log.debug("Registered table '%s'.", spec.name)
        return spec

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def get(self, name: str) -> TableSpec | None:
        return self._specs.get(name)

    def names(self) -> list[str]:
        return list(self._specs)

    def specs(self) -> list[TableSpec]:
        return list(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[TableSpec]:
        return iter(self.specs())

    # ------------------------------------------------------------------
    # Live schema
    # ------------------------------------------------------------------

    def _live_tables(self, controller: ConnectionController) -> set[str]:
        controller.ensure_open().unwrap()
        with controller.lock:
            return set(controller.engine.list_tables(controller.handle))

    def missing_tables(self, controller: ConnectionController) -> list[str]:
        """
        Registered names absent from the live schema, in registration order.

        Raises:
            DatabaseError: If the connection cannot be opened or the live
                           table list cannot be read.
        """
        try:
            live = self._live_tables(controller)
        except controller.engine.error_types as exc:
            raise DatabaseError(f"Could not list tables: {exc}") from exc
        return [name for name in self._specs if name not in live]

    def reconcile_all(self, controller: ConnectionController) -> ReconcileReport:
        """
        Create every registered table that is missing from the live schema.

        Returns:
            A report listing created, already present and skipped tables.
            ``report.ok`` is False only if no connection could be opened.
        """
        report = ReconcileReport()
        opened = controller.ensure_open()
        if not opened.ok:
            log.error("Cannot reconcile tables: %s", opened.error)
            report.error = opened.error
            return report

        try:
            live = self._live_tables(controller)
        except (DatabaseError, *controller.engine.error_types) as exc:
            # Fall through: CREATE on an existing table fails and is skipped.
            log.warning("Could not list live tables, creating all: %s", exc)
            live = set()

        for spec in self._specs.values():
            if spec.name in live:
                report.existing.append(spec.name)
                continue
            try:
                with controller.lock:
                    controller.engine.execute(controller.handle, spec.create_sql())
            except (DatabaseError, *controller.engine.error_types) as exc:
                error = SchemaError(spec.name, str(exc))
                log.warning("%s. Skipping table creation.", error)
                report.failed[spec.name] = str(exc)
                continue
            report.created.append(spec.name)
            log.info("Created table '%s'.", spec.name)

        log.info("Table reconciliation finished: %s", report)
        return report

    def verify_all(self, controller: ConnectionController) -> bool:
        """
        True iff every registered table exists in the live schema.

        Extra live tables are ignored. Connection or query failures are
        logged and reported as False.
        """
        try:
            missing = self.missing_tables(controller)
        except DatabaseError as exc:
            log.error("Could not verify tables: %s", exc)
            return False
        if missing:
            log.info("Missing tables: %s", ", ".join(missing))
            return False
        return True
