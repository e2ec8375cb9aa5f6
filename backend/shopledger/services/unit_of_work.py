# Overview: Transaction boundary shared by every multi-row ledger mutation.

from __future__ import annotations

from typing import Callable, TypeVar

from sqlalchemy.orm import Session

from ..extensions import db

T = TypeVar("T")


def lock_for_update(query):
    """
    Apply row-level locking for read-then-write rows.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(func: Callable[[Session], T]) -> T:
    """
    Run func(session) as one unit of work.

    Commits everything func wrote if it returns, rolls all of it back and
    re-raises if it throws. There is no retry: the caller resubmits.
    """
    session = db.session
    try:
        result = func(session)
        session.commit()
        return result
    except Exception:
        session.rollback()
        raise
