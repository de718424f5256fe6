"""
Database Helper Utilities for Concurrency Control

Provides:
- Database dialect detection (PostgreSQL vs SQLite)
- Row locking for booking intake
- Advisory locking for the reconciliation sweep
"""

import logging
from typing import Optional, TypeVar, Type
from sqlalchemy.orm import Session
from sqlalchemy import text

logger = logging.getLogger(__name__)

T = TypeVar('T')

# pg_advisory lock key for the reconciliation sweep ("OXYR" in ASCII)
RECONCILER_LOCK_KEY = 0x4F585952


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    try:
        dialect = db.bind.dialect.name
        return dialect == 'postgresql'
    except Exception:
        return False


def acquire_row_lock(
    db: Session,
    model: Type[T],
    filter_condition,
    nowait: bool = False
) -> Optional[T]:
    """
    Acquire a row-level lock on a database record.

    Only PostgreSQL takes a real lock; SQLite serializes writers anyway.

    Raises:
        OperationalError: If nowait=True and row is locked by another transaction

    Example:
        bed = acquire_row_lock(db, Bed, Bed.id == bed_id, nowait=True)
    """
    query = db.query(model).filter(filter_condition)

    if is_postgres(db):
        if nowait:
            query = query.with_for_update(nowait=True)
        else:
            query = query.with_for_update()

    return query.first()


def try_advisory_xact_lock(db: Session, key: int = RECONCILER_LOCK_KEY) -> bool:
    """
    Try to take a transaction-scoped advisory lock.

    Released automatically at commit/rollback. Always succeeds on
    databases without advisory locks.
    """
    if not is_postgres(db):
        return True

    acquired = db.execute(
        text("SELECT pg_try_advisory_xact_lock(:key)"), {"key": key}
    ).scalar()
    if not acquired:
        logger.info(f"Advisory lock {key} held by another session")
    return bool(acquired)
