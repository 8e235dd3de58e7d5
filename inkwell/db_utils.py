"""Database helper utilities for ensuring schema consistency."""
from __future__ import annotations

from typing import Dict, Iterable, Set

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db


# Columns added after the first release, keyed by table name.
_LATE_COLUMNS: Dict[str, Dict[str, str]] = {
    "ai_executions": {
        "prompt_ids": "ALTER TABLE ai_executions ADD COLUMN prompt_ids JSON",
    },
    "scripts": {
        "origin": "ALTER TABLE scripts ADD COLUMN origin VARCHAR(20) NOT NULL DEFAULT 'manual'",
    },
    "users": {
        "openrouter_key": "ALTER TABLE users ADD COLUMN openrouter_key TEXT",
    },
}


def _get_column_names(table_name: str) -> Set[str]:
    inspector = inspect(db.engine)
    return {column["name"] for column in inspector.get_columns(table_name)}


def ensure_database_schema() -> None:
    """Ensure that essential schema updates are applied.

    Runs on every application start. Missing tables are created from the
    model metadata, and columns introduced after a database was first created
    are added in place so older SQLite files keep working without a migration.
    """

    # Import locally to avoid circular import issues during application setup.
    from . import models  # noqa: F401

    try:
        inspector = inspect(db.engine)
        table_names: Iterable[str] = set(inspector.get_table_names())

        missing = [table for table in db.metadata.sorted_tables if table.name not in table_names]
        for table in missing:
            table.create(bind=db.engine)

        for table_name, columns in _LATE_COLUMNS.items():
            if table_name not in table_names:
                continue
            existing = _get_column_names(table_name)
            for column_name, statement in columns.items():
                if column_name in existing:
                    continue
                with db.engine.begin() as connection:
                    connection.execute(text(statement))
    except SQLAlchemyError:
        # Re-raise so the application does not continue in a partially configured state.
        raise
