"""
tests/test_connection.py
------------------------
Tests for dbcore/connection.py against real SQLite files.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import threading
from pathlib import Path

import pytest

from config import DatabaseConfig
from conftest import CountingEngine, FlakyEngine
from dbcore.connection import ConnectionController
from dbcore.errors import (
    ConnectionLostError,
    DatabaseConnectionError,
    DatabaseCreationError,
    ExecError,
)
from dbcore.executor import CommandExecutor
from dbcore.retry import Decision, RetryPolicy


# ---------------------------------------------------------------------------
# ensure_open / close
# ---------------------------------------------------------------------------

class TestEnsureOpen:
    def test_opens_database(self, db_config: DatabaseConfig, retry_policy: RetryPolicy) -> None:
        ctrl = ConnectionController(db_config, policy=retry_policy)
        result = ctrl.ensure_open()
        assert result.ok
        assert ctrl.is_open
        ctrl.close()

    def test_idempotent(self, db_config: DatabaseConfig, retry_policy: RetryPolicy) -> None:
        engine = CountingEngine()
        ctrl = ConnectionController(db_config, engine=engine, policy=retry_policy)
        ctrl.ensure_open()
        first = ctrl.handle
        second_result = ctrl.ensure_open()
        assert second_result.ok
        assert second_result.attempts == 0
        assert ctrl.handle is first
        assert engine.opens == 1
        ctrl.close()

    def test_reopen_after_close(self, db_config: DatabaseConfig, retry_policy: RetryPolicy) -> None:
        engine = CountingEngine()
        ctrl = ConnectionController(db_config, engine=engine, policy=retry_policy)
        ctrl.ensure_open()
        ctrl.close()
        assert not ctrl.is_open
        assert ctrl.ensure_open().ok
        assert engine.opens == 2
        ctrl.close()

    def test_retry_then_success(self, db_config: DatabaseConfig, retry_policy: RetryPolicy) -> None:
        engine = FlakyEngine(fail_opens=2)
        ctrl = ConnectionController(db_config, engine=engine, policy=retry_policy)
        result = ctrl.ensure_open()
        assert result.ok
        assert result.attempts == 3
        ctrl.close()

    def test_abandon_returns_connection_error(
        self, db_config: DatabaseConfig, abandon_policy: RetryPolicy
    ) -> None:
        ctrl = ConnectionController(db_config, engine=FlakyEngine(fail_opens=5), policy=abandon_policy)
        result = ctrl.ensure_open()
        assert not result.ok
        assert isinstance(result.error, DatabaseConnectionError)
        assert result.attempts == 1
        assert not ctrl.is_open

    def test_retry_budget_exhausted(self, db_config: DatabaseConfig, retry_policy: RetryPolicy) -> None:
        engine = FlakyEngine(fail_opens=10)
        ctrl = ConnectionController(db_config, engine=engine, policy=retry_policy)
        result = ctrl.ensure_open()
        assert not result.ok
        assert result.attempts == retry_policy.max_attempts

    def test_missing_directory_fails(self, tmp_path: Path, abandon_policy: RetryPolicy) -> None:
        cfg = DatabaseConfig(app_path=tmp_path / "nope" / "deeper", file_name="x.sqlite")
        ctrl = ConnectionController(cfg, policy=abandon_policy)
        result = ctrl.ensure_open()
        assert isinstance(result.error, DatabaseConnectionError)

    def test_lock_free_while_decider_runs(self, db_config: DatabaseConfig) -> None:
        ctrl: ConnectionController
        acquired: list[bool] = []

        def decide(error) -> Decision:
            # Another thread must be able to take the lock during the prompt.
            def grab() -> None:
                got = ctrl.lock.acquire(timeout=2)
                acquired.append(got)
                if got:
                    ctrl.lock.release()

            t = threading.Thread(target=grab)
            t.start()
            t.join()
            return Decision.RETRY

        policy = RetryPolicy(decide=decide, max_attempts=3, retry_delay=0.0)
        ctrl = ConnectionController(db_config, engine=FlakyEngine(fail_opens=1), policy=policy)
        assert ctrl.ensure_open().ok
        assert acquired == [True]
        ctrl.close()

    def test_concurrent_opens_share_one_handle(
        self, db_config: DatabaseConfig, retry_policy: RetryPolicy
    ) -> None:
        engine = CountingEngine()
        ctrl = ConnectionController(db_config, engine=engine, policy=retry_policy)
        threads = [threading.Thread(target=ctrl.ensure_open) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert ctrl.is_open
        assert engine.opens == 1
        ctrl.close()

    def test_handle_requires_open(self, controller: ConnectionController) -> None:
        with pytest.raises(ConnectionLostError):
            _ = controller.handle


class TestClose:
    def test_close_twice_is_noop(self, db_config: DatabaseConfig, retry_policy: RetryPolicy) -> None:
        engine = CountingEngine()
        ctrl = ConnectionController(db_config, engine=engine, policy=retry_policy)
        ctrl.ensure_open()
        ctrl.close()
        ctrl.close()
        assert engine.closes == 1

    def test_close_never_opened(self, controller: ConnectionController) -> None:
        controller.close()
        assert not controller.is_open


# ---------------------------------------------------------------------------
# Database file
# ---------------------------------------------------------------------------

class TestDatabaseFile:
    def test_exists_false_then_true(self, controller: ConnectionController) -> None:
        assert not controller.database_exists()
        assert controller.create_database_file().ok
        assert controller.database_exists()
        assert controller.path.stat().st_size == 0

    def test_exists_for_explicit_path(self, controller: ConnectionController, tmp_path: Path) -> None:
        other = tmp_path / "other.sqlite"
        other.write_bytes(b"")
        assert controller.database_exists(other)
        assert not controller.database_exists(tmp_path / "ghost.sqlite")

    def test_directory_is_not_a_database(self, controller: ConnectionController, tmp_path: Path) -> None:
        assert not controller.database_exists(tmp_path)

    def test_create_leaves_existing_file(self, controller: ConnectionController) -> None:
        controller.path.write_bytes(b"keep me")
        result = controller.create_database_file()
        assert result.ok
        assert result.attempts == 0
        assert controller.path.read_bytes() == b"keep me"

    def test_create_makes_parent_dirs(self, controller: ConnectionController, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "db.sqlite"
        assert controller.create_database_file(target).ok
        assert target.is_file()

    def test_create_failure(self, tmp_path: Path, abandon_policy: RetryPolicy) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        cfg = DatabaseConfig(app_path=blocker, file_name="db.sqlite")
        ctrl = ConnectionController(cfg, policy=abandon_policy)
        result = ctrl.create_database_file()
        assert not result.ok
        assert isinstance(result.error, DatabaseCreationError)

    def test_create_fails_when_directory_in_the_way(
        self, controller: ConnectionController, abandon_policy: RetryPolicy
    ) -> None:
        controller.path.mkdir()
        ctrl = ConnectionController(controller.config, policy=abandon_policy)
        result = ctrl.create_database_file()
        assert not result.ok
        assert isinstance(result.error, DatabaseCreationError)
        assert not ctrl.database_exists()


# ---------------------------------------------------------------------------
# run / transaction
# ---------------------------------------------------------------------------

class TestRun:
    def test_run_opens_lazily(self, controller: ConnectionController) -> None:
        result = controller.run(lambda handle: controller.engine.execute_scalar(handle, "SELECT 41 + 1"), "Sum")
        assert result.ok
        assert result.value == 42
        assert controller.is_open

    def test_run_reports_connection_error(self, tmp_path: Path, abandon_policy: RetryPolicy) -> None:
        ctrl = ConnectionController(
            DatabaseConfig(app_path=tmp_path, file_name="db.sqlite"),
            engine=FlakyEngine(fail_opens=1),
            policy=abandon_policy,
        )
        result = ctrl.run(lambda handle: 1, "Anything")
        assert isinstance(result.error, DatabaseConnectionError)

    def test_run_wraps_engine_errors(self, controller: ConnectionController) -> None:
        result = controller.run(
            lambda handle: controller.engine.execute(handle, "SELECT * FROM missing"), "Broken"
        )
        assert isinstance(result.error, ExecError)


class TestTransaction:
    def test_commit(self, controller: ConnectionController, executor: CommandExecutor, users_table: str) -> None:
        with controller.transaction():
            executor.insert(users_table, "name", ("Alice",)).unwrap()
            executor.insert(users_table, "name", ("Bob",)).unwrap()
        assert executor.count_rows(users_table) == 2

    def test_rollback_on_error(
        self, controller: ConnectionController, executor: CommandExecutor, users_table: str
    ) -> None:
        with pytest.raises(RuntimeError):
            with controller.transaction():
                executor.insert(users_table, "name", ("Alice",)).unwrap()
                raise RuntimeError("abort")
        assert executor.count_rows(users_table) == 0


class TestThreading:
    def test_concurrent_inserts_are_serialised(
        self, executor: CommandExecutor, users_table: str
    ) -> None:
        ids: list[int] = []
        ids_lock = threading.Lock()

        def worker(n: int) -> None:
            for i in range(25):
                row_id = executor.insert(users_table, "name, age", (f"w{n}", i)).unwrap()
                with ids_lock:
                    ids.append(row_id)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert executor.count_rows(users_table) == 100
        assert len(set(ids)) == 100
