# Overview: Unit-of-work and row locking helpers shared by the stores.

from __future__ import annotations

import math

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from ..extensions import db


# Driver-level markers for "gave up waiting on a lock"
_PG_LOCK_NOT_AVAILABLE = "55P03"
_PG_QUERY_CANCELED = "57014"
_MYSQL_LOCK_WAIT_TIMEOUT = 1205


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() makes the locked read overwrite any copy already in
    the session's identity map, so the caller decides on the locked values.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; UnitOfWork.begin() takes the
    database write lock up front there instead.
    """
    return query.with_for_update().populate_existing()


class UnitOfWorkError(RuntimeError):
    """Raised when a unit-of-work is driven out of order."""


class UnitOfWork:
    """
    One database transaction on one session.

    Every store call made during a finalization receives the same instance,
    so all writes commit or roll back together. The owner calls begin()
    once, then exactly one of commit()/rollback(), then close().
    """

    def __init__(self, session=None, *, lock_timeout: float | None = None):
        self.session = session if session is not None else db.session
        self.lock_timeout = lock_timeout
        self.state = "NEW"

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    def begin(self) -> None:
        if self.state != "NEW":
            raise UnitOfWorkError(f"cannot begin a unit-of-work in state {self.state}")

        dialect = self.dialect
        if dialect == "sqlite":
            if self.lock_timeout is not None:
                self.session.execute(text(f"PRAGMA busy_timeout = {int(self.lock_timeout * 1000)}"))
            # SQLite has no row locks; take the write lock for the whole transaction
            self.session.execute(text("BEGIN IMMEDIATE"))
        elif dialect == "postgresql":
            if self.lock_timeout is not None:
                self.session.execute(text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout * 1000)}ms'"))
        elif dialect in ("mysql", "mariadb"):
            if self.lock_timeout is not None:
                seconds = max(1, math.ceil(self.lock_timeout))
                self.session.execute(text(f"SET SESSION innodb_lock_wait_timeout = {seconds}"))
        self.state = "ACTIVE"

    def commit(self) -> None:
        if self.state != "ACTIVE":
            raise UnitOfWorkError(f"cannot commit a unit-of-work in state {self.state}")
        self.session.commit()
        self.state = "COMMITTED"

    def rollback(self) -> None:
        if self.state in ("COMMITTED", "ROLLED_BACK", "CLOSED"):
            return
        self.state = "ROLLING_BACK"
        self.session.rollback()
        self.state = "ROLLED_BACK"

    def close(self) -> None:
        if self.state == "CLOSED":
            return
        self.session.close()
        self.state = "CLOSED"


def is_lock_timeout(exc: BaseException) -> bool:
    """True when the database gave up waiting for a lock."""
    if not isinstance(exc, OperationalError):
        return False

    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in (_PG_LOCK_NOT_AVAILABLE, _PG_QUERY_CANCELED):
        return True

    args = getattr(orig, "args", ()) or ()
    if args and args[0] == _MYSQL_LOCK_WAIT_TIMEOUT:
        return True

    message = str(orig or exc).lower()
    return (
        "database is locked" in message
        or "lock timeout" in message
        or "lock wait timeout" in message
    )
