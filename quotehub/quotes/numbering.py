# quotehub/quotes/numbering.py
"""Quote numbers: ``{prefix}-{year}-{n:04d}`` from a per-organization counter."""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from quotehub.errors import ConflictError
from quotehub.models import QuoteSequence

MAX_ATTEMPTS = 3


def format_quote_number(prefix: str, year: int, number: int) -> str:
    return f"{prefix}-{year}-{number:04d}"


def _bump(session, organization_id: int, year: int) -> bool:
    result = session.execute(
        update(QuoteSequence)
        .where(QuoteSequence.organization_id == organization_id,
               QuoteSequence.year == year)
        .values(current_number=QuoteSequence.current_number + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def next_quote_number(session, organization_id: int, year: int, prefix: str = 'QT') -> str:
    """Reserve the next number for ``organization_id`` in ``year``.

    The increment is a single UPDATE on the counter row, so it holds the
    row lock until the surrounding transaction ends; two transactions can
    never read the same value.  The first quote of a year inserts the row
    inside a savepoint, and losing that insert race just means retrying the
    UPDATE against the winner's row.
    """
    for _ in range(MAX_ATTEMPTS):
        if _bump(session, organization_id, year):
            break
        try:
            with session.begin_nested():
                session.add(QuoteSequence(
                    organization_id=organization_id,
                    year=year,
                    prefix=prefix,
                    current_number=1,
                ))
            break
        except IntegrityError:
            logging.info("quote sequence for org=%s year=%s created concurrently, retrying",
                         organization_id, year)
    else:
        raise ConflictError('Could not reserve a quote number, please retry')

    current = session.execute(
        select(QuoteSequence.current_number, QuoteSequence.prefix)
        .where(QuoteSequence.organization_id == organization_id,
               QuoteSequence.year == year)
    ).one()
    return format_quote_number(current.prefix or prefix, year, current.current_number)
