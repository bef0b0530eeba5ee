# quotehub/persistence.py
"""Commit/rollback handling shared by the services."""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from quotehub.errors import ConflictError, PersistenceError, QuoteHubError


@contextmanager
def unit_of_work(session, action: str):
    """Run the body and commit it as one transaction.

    Anything raised inside rolls the whole session back, so a failed
    write never leaves part of an aggregate behind.  Integrity violations
    surface as ``ConflictError``; other database failures as
    ``PersistenceError``.
    """
    try:
        yield session
        session.commit()
    except QuoteHubError:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        logging.warning("%s rejected by a database constraint: %s", action, exc.orig)
        raise ConflictError(f'{action} conflicts with existing data') from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logging.exception("%s failed", action)
        raise PersistenceError(f'{action} failed') from exc
    except Exception:
        session.rollback()
        raise
