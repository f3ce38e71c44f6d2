# Overview: Service-layer helpers for concurrent writes: retries, row locks and conflict-free inserts.

from __future__ import annotations

import time

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError.
    Anything else rolls back the session and propagates on the first failure,
    so a failing batch never leaves a partial write behind.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc


def insert_ignore_conflicts(model, rows: list[dict], *, conflict_columns: list[str]) -> int:
    """
    INSERT rows, silently skipping any that hit the unique key on conflict_columns.

    Uses ON CONFLICT DO NOTHING, so only SQLite and PostgreSQL are supported;
    any other backend raises RuntimeError before touching the table.
    Returns how many rows were actually inserted. Does not commit.
    """
    if not rows:
        return 0

    dialect = db.session.get_bind().dialect.name
    if dialect not in ("sqlite", "postgresql"):
        raise RuntimeError(f"insert_ignore_conflicts does not support the {dialect} backend")

    insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
    stmt = insert(model.__table__).values(rows).on_conflict_do_nothing(
        index_elements=conflict_columns
    )
    result = db.session.execute(stmt)
    return max(result.rowcount or 0, 0)
