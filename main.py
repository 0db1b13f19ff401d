#!/usr/bin/env python3
"""
main.py
-------
Console front end for the SQLite Database Manager.

Usage::

    python main.py [--app-path DIR] [--db-file NAME] <command> [args]

Commands:
    init                 Create the database file if it does not exist
    backup [--name N]    Snapshot the database into <app-path>/backups
    restore NAME         Restore a backup (a safety backup is taken first)
    purge [DAYS]         Delete backups at least DAYS old (default from config)
    latest               Print the newest backup name
    list                 List backups, oldest first
    reconcile SCHEMA     Create tables declared in a JSON schema file
    verify SCHEMA        Exit 0 iff every declared table exists
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from config import CONFIG
from dbcore import BackupIOError, DatabaseError, DatabaseManager, RetryPolicy, console_decider
from logger import get_logger, set_console_level
from models.records import load_table_specs

log = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description=CONFIG.app_name)
    ap.add_argument("--app-path", type=Path, default=None, help="Directory holding the database file")
    ap.add_argument("--db-file", default=None, help="Database file name (default from config)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the database file if missing")

    p_backup = sub.add_parser("backup", help="Create a backup")
    p_backup.add_argument("--name", default=None, help="Backup file name (default: UTC epoch seconds)")

    p_restore = sub.add_parser("restore", help="Restore a backup")
    p_restore.add_argument("name")

    p_purge = sub.add_parser("purge", help="Delete old backups")
    p_purge.add_argument("days", type=int, nargs="?", default=None)

    sub.add_parser("latest", help="Print the most recent backup name")
    sub.add_parser("list", help="List backups")

    for name in ("reconcile", "verify"):
        p = sub.add_parser(name, help=f"{name.capitalize()} tables from a JSON schema file")
        p.add_argument("schema", type=Path)
    return ap


def make_manager(args: argparse.Namespace) -> DatabaseManager:
    db_config = CONFIG.db
    if args.app_path is not None:
        db_config = replace(db_config, app_path=args.app_path)
    if args.db_file:
        db_config = replace(db_config, file_name=args.db_file)
    return DatabaseManager(
        config=db_config,
        policy=RetryPolicy.from_config(decide=console_decider),
        backup_dir_name=CONFIG.backup.dir_name,
    )


def run_command(db: DatabaseManager, args: argparse.Namespace) -> int:
    command = args.command

    if command == "init":
        result = db.create_database()
        if not result.ok:
            print(f"✗ {result.error}", file=sys.stderr)
            return 1
        print(f"✓ Database ready: {db.path}")
        return 0

    if command == "backup":
        path = db.create_backup(args.name)
        if path is None:
            print(f"✗ No database file at {db.path}", file=sys.stderr)
            return 1
        print(path.name)
        return 0

    if command == "restore":
        db.restore_backup(args.name)
        print(f"✓ Restored {args.name}")
        return 0

    if command == "purge":
        for name in db.purge_backups(args.days):
            print(name)
        return 0

    if command == "latest":
        latest = db.get_most_recent_backup()
        if latest is None:
            return 1
        print(latest)
        return 0

    if command == "list":
        for record in db.list_backups():
            print(f"{record.created_at.isoformat()}  {record.name}")
        return 0

    for spec in load_table_specs(args.schema):
        db.schema.add(spec)
    if command == "reconcile":
        report = db.create_all_tables()
        print(report)
        return 0 if report.ok else 1
    ok = db.tables_are_verified()
    print("✓ Tables verified" if ok else "✗ Missing tables")
    return 0 if ok else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_console_level(logging.DEBUG)
    db = make_manager(args)
    try:
        return run_command(db, args)
    except (BackupIOError, ValueError, OSError) as exc:
        print(f"✗ {exc}", file=sys.stderr)
        return 1
    except DatabaseError as exc:
        log.error("Database error: %s", exc)
        print(f"✗ {exc}", file=sys.stderr)
        return 1
    finally:
        db.close_connection()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
