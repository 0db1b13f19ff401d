"""
models/records.py
-----------------
Typed records for declared tables and backup files.

Design Decision:
    ``TableSpec`` accepts the creation statement in the forms callers
    actually write (a full statement, ``name (columns...)`` or just
    ``(columns...)``) and normalises it in one place, so the registry and the
    executor never guess.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_CREATE_RE = re.compile(r"^\s*CREATE\s", re.IGNORECASE)


@dataclass(frozen=True)
class TableSpec:
    """
    A declared table.

    Attributes:
        name:                Logical table name (unique within a registry).
        creation_statement:  ``CREATE TABLE ...``, ``name (...)`` or ``(...)``.
    """
    name: str
    creation_statement: str

    def create_sql(self) -> str:
        """Return the full CREATE TABLE statement for this table."""
        body = self.creation_statement.strip()
        if _CREATE_RE.match(body):
            return body
        if body.startswith("("):
            return f'CREATE TABLE "{self.name}" {body}'
        return f"CREATE TABLE {body}"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "creation_statement": self.creation_statement}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "TableSpec":
        return TableSpec(
            name=data.get("name", ""),
            creation_statement=data.get("creation_statement", ""),
        )


@dataclass(frozen=True)
class BackupRecord:
    """
    One backup file in the backups directory.

    Attributes:
        name:        File name inside the backups directory.
        path:        Full path of the file.
        created_at:  UTC timestamp the backup was written.
    """
    name: str
    path: Path
    created_at: datetime

    def age_days(self, now: datetime | None = None) -> float:
        """Age in (fractional) days, never negative."""
        now = now or datetime.now(timezone.utc)
        return max(0.0, (now - self.created_at).total_seconds() / 86400.0)


def load_table_specs(path: Path) -> list[TableSpec]:
    """
    Load table declarations from a JSON file.

    Accepted shapes: a list of ``{"name", "creation_statement"}`` objects,
    or an object mapping table name → creation statement.

    Raises:
        ValueError: If the file is not valid JSON or has another shape.
        OSError:    If the file cannot be read.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in schema file '{path}': {exc}") from exc

    if isinstance(raw, dict):
        return [TableSpec(name=k, creation_statement=v) for k, v in raw.items()]
    if isinstance(raw, list):
        return [TableSpec.from_dict(item) for item in raw if isinstance(item, dict)]
    raise ValueError(f"Schema file '{path}' must hold a JSON object or list.")


def save_table_specs(path: Path, specs: list[TableSpec]) -> None:
    """Write table declarations as JSON (write-then-rename)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps([s.to_dict() for s in specs], indent=4), encoding="utf-8")
    tmp.replace(path)
