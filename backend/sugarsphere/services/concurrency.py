# Overview: Transaction helpers shared by services that write more than one row.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import OperationalError

from ..extensions import db


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of DB work, retrying on transient lock/deadlock errors.

    func must be safe to re-run from scratch: every attempt starts from a
    rolled-back session. Domain errors propagate on the first attempt.
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            current_app.logger.warning(
                "Transient database error, retrying in %.2fs (attempt %d/%d)",
                delay, attempt + 1, attempts,
            )
            time.sleep(delay)


@contextmanager
def atomic():
    """
    All-or-nothing unit of work on the shared session.

    Commits on normal exit. Any exception rolls back every write made
    inside the block and is re-raised.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
