# Overview: Locking and retry primitives shared by write paths.

from __future__ import annotations

from flask import current_app
from sqlalchemy import text

from ..extensions import db


def begin_write() -> None:
    """
    Open the write transaction up front.

    SQLite has no row locks and ignores FOR UPDATE, so take the database
    RESERVED lock immediately; concurrent writers wait on busy_timeout instead
    of interleaving their stock checks. Other dialects rely on lock_for_update.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def lock_for_update(query):
    """
    Apply row-level locking and force a re-read of already-loaded rows.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write covers it there.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, *, attempts: int, should_retry, label: str = "operation"):
    """
    Execute a unit of work, rolling back and retrying only when should_retry(exc)
    says the failure is one the caller knows to be transient.

    Everything else propagates on the first failure.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except Exception as exc:
            db.session.rollback()
            if attempt >= attempts or not should_retry(exc):
                raise
            current_app.logger.warning(
                "Retrying %s after attempt %d/%d failed: %s", label, attempt, attempts, exc
            )
