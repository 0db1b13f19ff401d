"""
dbcore/connection.py
--------------------
Ownership of the single logical connection to the database file.

Design Decisions:
    * One controller owns at most one live handle; ``ensure_open()`` is
      idempotent and never opens a second connection while one is live.
    * Every engine call made through the controller happens under an
      ``RLock`` so threads sharing a controller are serialised. The lock is
      re-entrant so statements can run inside ``transaction()``.
    * Failures are resolved through the injected ``RetryPolicy`` and come
      back as ``OperationResult`` values, never as raised engine errors.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generator, TypeVar

from config import CONFIG, DatabaseConfig
from dbcore.engine import Engine, SQLiteEngine
from dbcore.errors import (
    ConnectionLostError,
    DatabaseConnectionError,
    DatabaseCreationError,
    DatabaseError,
    ExecError,
)
from dbcore.retry import ErrorFactory, OperationResult, RetryPolicy
from logger import get_logger

log = get_logger(__name__)

T = TypeVar("T")


def _exec_error(exc: BaseException) -> DatabaseError:
    return ExecError(str(exc))


class ConnectionController:
    """
    Opens, shares and closes the handle to one database file.

    Example::

        controller = ConnectionController(DatabaseConfig(app_path=Path("data")))
        if controller.ensure_open().ok:
            ...
        controller.close()
    """

    def __init__(
        self,
        config: DatabaseConfig | None = None,
        engine: Engine | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._config = config or CONFIG.db
        self._engine: Engine = engine or SQLiteEngine(
            timeout=self._config.timeout,
            check_same_thread=self._config.check_same_thread,
        )
        self._policy = policy or RetryPolicy.from_config()
        self._handle: Any = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def path(self) -> Path:
        return self._config.database_path

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Any:
        """The live engine handle; raises if the controller is closed."""
        if self._handle is None:
            raise ConnectionLostError(
                "Database connection is not open. Call ensure_open() first."
            )
        return self._handle

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def ensure_open(self) -> OperationResult[None]:
        """
        Open the database unless a handle is already live.

        Returns:
            A successful result (``attempts == 0`` when nothing had to be
            done), or a failed one carrying a ``DatabaseConnectionError``.
        """
        with self._lock:
            if self._handle is not None:
                return OperationResult(attempts=0)
        # Locked per attempt; the decider and back-off run without the lock.
        result = self._policy.run(
            self._open_once,
            f"Opening database '{self.path}'",
            lambda exc: DatabaseConnectionError(f"Connection to database failed: {exc}"),
            self._engine.error_types,
        )
        return OperationResult(error=result.error, attempts=result.attempts)

    def _open_once(self) -> None:
        with self._lock:
            if self._handle is not None:
                return
            self._handle = self._engine.open(self.path)
            log.info("Opened database '%s'.", self.path)

    def close(self) -> None:
        """Close the handle if open. Safe to call any number of times."""
        with self._lock:
            handle, self._handle = self._handle, None
            if handle is None:
                return
            try:
                self._engine.close(handle)
                log.info("Closed database '%s'.", self.path)
            except self._engine.error_types as exc:
                log.warning("Error while closing database '%s': %s", self.path, exc)

    # ------------------------------------------------------------------
    # Database file
    # ------------------------------------------------------------------

    def database_exists(self, path: Path | str | None = None) -> bool:
        """
        Return True if the database file exists.

        Only the file's presence is checked, not its integrity. I/O errors
        are logged and reported as "does not exist".
        """
        target = Path(path) if path is not None else self.path
        try:
            return target.is_file()
        except OSError as exc:
            log.warning("Could not check database file '%s': %s", target, exc)
            return False

    def create_database_file(self, path: Path | str | None = None) -> OperationResult[None]:
        """
        Create an empty database file, leaving an existing one untouched.

        Returns:
            A failed result carrying a ``DatabaseCreationError`` once the
            retry policy gives up.
        """
        target = Path(path) if path is not None else self.path
        if self.database_exists(target):
            log.debug("Database file '%s' already exists.", target)
            return OperationResult(attempts=0)

        def _create_once() -> None:
            if target.is_file():
                return
            # Raises for a directory or any other non-file at the path.
            self._engine.create_file(target)
            log.info("Created database file '%s'.", target)

        return self._policy.run(
            _create_once,
            f"Creating database file '{target}'",
            lambda exc: DatabaseCreationError(f"Could not create database file: {exc}"),
            self._engine.error_types,
        )

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------

    def run(
        self,
        operation: Callable[[Any], T],
        description: str,
        error_factory: ErrorFactory = _exec_error,
    ) -> OperationResult[T]:
        """
        Run ``operation(handle)`` under the lock with the retry policy.

        The connection is opened first; if that fails the connection error
        is returned. A handle closed by another thread between attempts is
        re-opened transparently.
        """
        opened = self.ensure_open()
        if not opened.ok:
            return OperationResult(error=opened.error, attempts=opened.attempts)

        def _attempt() -> T:
            with self._lock:
                if self._handle is None:
                    self._open_once()
                return operation(self._handle)

        return self._policy.run(
            _attempt, description, error_factory, self._engine.error_types
        )

    @contextmanager
    def transaction(self) -> Generator[Any, None, None]:
        """
        Explicit transaction on the shared handle.

        Commits on clean exit, rolls back on any exception. The lock is held
        for the whole block so other threads cannot interleave statements.

        Example::

            with controller.transaction():
                executor.insert("users", "name", ("Alice",))
                executor.insert("users", "name", ("Bob",))
        """
        with self._lock:
            self.ensure_open().unwrap()
            handle = self.handle
            self._engine.execute(handle, "BEGIN")
            try:
                yield handle
            except BaseException:
                try:
                    self._engine.execute(handle, "ROLLBACK")
                    log.debug("Transaction rolled back.")
                except self._engine.error_types as exc:
                    log.warning("Rollback failed: %s", exc)
                raise
            else:
                self._engine.execute(handle, "COMMIT")
                log.debug("Transaction committed.")
