from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


@contextmanager
def smart_transaction(session: Session) -> Iterator[Session]:
    """
    Run a block of catalog writes all-or-nothing.

    If the session already has a transaction open (a caller batching several
    operations, or autobegin after a read), a SAVEPOINT is used so a failure
    rolls back only this block. Otherwise a normal transaction is started and
    committed on exit.
    Usage:
        with smart_transaction(db):
            ... DB work ...
    """
    if session.in_transaction():
        cm = session.begin_nested()
    else:
        cm = session.begin()
    with cm:
        yield session
