"""
tests/conftest.py
-----------------
Shared fixtures: per-test database configs and engines that fail on demand.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from config import DatabaseConfig
from dbcore.connection import ConnectionController
from dbcore.engine import SQLiteEngine
from dbcore.executor import CommandExecutor
from dbcore.retry import RetryPolicy, always_abandon, always_retry


class CountingEngine(SQLiteEngine):
    """SQLiteEngine that counts opens and closes."""

    def __init__(self) -> None:
        super().__init__()
        self.opens = 0
        self.closes = 0

    def open(self, path: Path) -> sqlite3.Connection:
        self.opens += 1
        return super().open(path)

    def close(self, handle: sqlite3.Connection) -> None:
        self.closes += 1
        super().close(handle)


class FlakyEngine(CountingEngine):
    """Fails the first ``fail_opens`` opens and ``fail_executes`` statements."""

    def __init__(self, fail_opens: int = 0, fail_executes: int = 0) -> None:
        super().__init__()
        self.fail_opens = fail_opens
        self.fail_executes = fail_executes

    def open(self, path: Path) -> sqlite3.Connection:
        if self.fail_opens > 0:
            self.fail_opens -= 1
            raise sqlite3.OperationalError("database is locked")
        return super().open(path)

    def _maybe_fail(self) -> None:
        if self.fail_executes > 0:
            self.fail_executes -= 1
            raise sqlite3.OperationalError("database is locked")

    def execute(self, handle, sql, params=()):
        self._maybe_fail()
        return super().execute(handle, sql, params)

    def execute_insert(self, handle, sql, params=()):
        self._maybe_fail()
        return super().execute_insert(handle, sql, params)


class ScalarFailingEngine(SQLiteEngine):
    """Every statement runs, but the next ``fail_scalars`` scalar reads fail."""

    def __init__(self, fail_scalars: int = 0) -> None:
        super().__init__()
        self.fail_scalars = fail_scalars

    def execute_scalar(self, handle, sql, params=()):
        if self.fail_scalars > 0:
            self.fail_scalars -= 1
            raise sqlite3.OperationalError("disk I/O error")
        return super().execute_scalar(handle, sql, params)


@pytest.fixture
def db_config(tmp_path: Path) -> DatabaseConfig:
    return DatabaseConfig(app_path=tmp_path, file_name="test.sqlite")


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(decide=always_retry, max_attempts=3, retry_delay=0.0)


@pytest.fixture
def abandon_policy() -> RetryPolicy:
    return RetryPolicy(decide=always_abandon, max_attempts=3, retry_delay=0.0)


@pytest.fixture
def controller(db_config: DatabaseConfig, retry_policy: RetryPolicy):
    ctrl = ConnectionController(db_config, policy=retry_policy)
    yield ctrl
    ctrl.close()


@pytest.fixture
def executor(controller: ConnectionController) -> CommandExecutor:
    return CommandExecutor(controller)


@pytest.fixture
def users_table(executor: CommandExecutor) -> str:
    executor.create_table("users (id INTEGER PRIMARY KEY, name TEXT, age INTEGER)").unwrap()
    return "users"
