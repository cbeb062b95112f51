# Overview: Retry helper for database work that can lose an optimistic-locking race.

from __future__ import annotations

import time

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError ("database is locked" under SQLite) and
    StaleDataError (Product.version_id changed under us). func must be safe
    to re-run from scratch: it re-reads whatever it needs.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            if has_app_context():
                current_app.logger.warning(
                    "Retrying after %s (attempt %d of %d)",
                    type(exc).__name__, attempt + 1, attempts,
                )
            time.sleep(backoff_base * (2 ** attempt))
