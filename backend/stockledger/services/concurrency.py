# Overview: Transaction and row-locking helpers shared by the ledger write paths.

from __future__ import annotations

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; its database-level write
    lock serializes writers instead. Other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(func):
    """
    Run func as one unit of work: commit on success, roll back on any error.

    No retries: a failed write is surfaced to the caller.
    """
    try:
        result = func()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return result
