from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """
    Run a unit of work on the given Session and commit it as one transaction.

    The session may already have auto-begun a transaction (any prior read does
    that), so this does not call begin(); it commits on a clean exit and rolls
    back everything since the last commit on any exception.
    Usage:
        with atomic(db):
            ... DB work ...
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
