# Overview: Flask extension instances and the explicit Database handle passed to services.

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from .services.concurrency import run_with_retry

db = SQLAlchemy()
migrate = Migrate()

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Database:
    """
    Handle around the Flask-SQLAlchemy extension.

    Services receive one of these in their constructor instead of reaching
    for module state, and open every multi-row mutation through
    ``transaction()`` so a failure at any step rolls the whole unit back.
    """

    def __init__(self, sqlalchemy: SQLAlchemy):
        self._db = sqlalchemy

    @property
    def session(self) -> Session:
        return self._db.session

    @property
    def engine(self):
        return self._db.engine

    @property
    def is_sqlite(self) -> bool:
        return self.engine.dialect.name == "sqlite"

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        One explicit database transaction: commit on success, rollback on any error.

        SQLite ignores SELECT ... FOR UPDATE, so there the transaction takes the
        database write lock up front with BEGIN IMMEDIATE.
        """
        session = self.session
        try:
            if self.is_sqlite:
                self._begin_immediate(session)
            yield session
            session.commit()
        except BaseException:
            session.rollback()
            raise

    def run(self, func: Callable[[Session], T], *, attempts: int = 3, backoff_base: float = 0.1) -> T:
        """Run ``func`` inside ``transaction()``, retrying lock contention."""
        def _op() -> T:
            with self.transaction() as session:
                return func(session)

        return run_with_retry(_op, session=self.session, attempts=attempts, backoff_base=backoff_base)

    @staticmethod
    def _begin_immediate(session: Session) -> None:
        raw = session.connection().connection.driver_connection
        if not raw.in_transaction:
            session.execute(text("BEGIN IMMEDIATE"))


def connect_with_retry(database: Database, *, attempts: int = 5, backoff_base: float = 0.5) -> None:
    """
    Acquire a first connection at startup, backing off between failures.

    Raises the last OperationalError once attempts are exhausted.
    """
    for attempt in range(attempts):
        try:
            with database.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return
        except OperationalError:
            if attempt >= attempts - 1:
                logger.error("Database unreachable after %d attempts", attempts)
                raise
            delay = backoff_base * (2 ** attempt)
            logger.warning(
                "Database connection attempt %d/%d failed, retrying in %.2fs",
                attempt + 1, attempts, delay,
            )
            time.sleep(delay)
