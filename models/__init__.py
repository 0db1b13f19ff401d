"""models/__init__.py"""
from models.records import (
    TableSpec,
    BackupRecord,
    load_table_specs,
    save_table_specs,
)

__all__ = [
    "TableSpec",
    "BackupRecord",
    "load_table_specs",
    "save_table_specs",
]
