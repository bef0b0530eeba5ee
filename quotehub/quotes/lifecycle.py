# quotehub/quotes/lifecycle.py
"""Quote status transitions.

    DRAFT -> SENT -> VIEWED -> ACCEPTED | REJECTED
    SENT | VIEWED -> EXPIRED   (once valid_until has passed)

Only DRAFT quotes can be edited.  Expiry is evaluated lazily whenever a
quote is read or answered; nothing runs in the background.
"""

import logging

from quotehub.errors import ForbiddenError, ValidationError
from quotehub.models import QuoteStatus, QuoteView

EXPIRABLE = (QuoteStatus.SENT, QuoteStatus.VIEWED)


def is_editable(quote) -> bool:
    return quote.status == QuoteStatus.DRAFT


def ensure_editable(quote) -> None:
    if not is_editable(quote):
        raise ForbiddenError(
            f'Quote {quote.quote_number} is {quote.status} and can no longer be edited',
            context={'status': quote.status},
        )


def expire_if_due(quote, now) -> bool:
    """Move a lapsed SENT/VIEWED quote to EXPIRED.  Returns True on change."""
    if quote.status not in EXPIRABLE or quote.valid_until is None:
        return False
    if now.date() <= quote.valid_until:
        return False
    logging.info("quote %s expired (valid until %s)", quote.quote_number, quote.valid_until)
    quote.status = QuoteStatus.EXPIRED
    return True


def send(quote, now) -> None:
    if quote.status != QuoteStatus.DRAFT:
        raise ForbiddenError(f'Only draft quotes can be sent (quote is {quote.status})',
                             context={'status': quote.status})
    missing = []
    if not (quote.title or '').strip():
        missing.append('title')
    if quote.customer_id is None:
        missing.append('customer')
    if not quote.priced_items:
        missing.append('items')
    if missing:
        raise ValidationError('Quote cannot be sent without ' + ', '.join(missing),
                              context={'missing': missing})
    quote.status = QuoteStatus.SENT
    quote.sent_at = now
    logging.info("quote %s sent", quote.quote_number)


def record_view(quote, now, viewer_ip=None, user_agent=None) -> QuoteView:
    """Log a customer view.  The first one moves SENT to VIEWED."""
    if quote.status == QuoteStatus.DRAFT:
        raise ForbiddenError('Quote has not been sent')
    view = QuoteView(viewer_ip=viewer_ip, user_agent=(user_agent or '')[:300] or None,
                     viewed_at=now)
    quote.views.append(view)
    if quote.status == QuoteStatus.SENT:
        quote.status = QuoteStatus.VIEWED
        quote.viewed_at = now
    return view


def _respond(quote, now, outcome) -> None:
    if quote.status != QuoteStatus.VIEWED:
        raise ForbiddenError(
            f'Quote cannot be {outcome.lower()} while {quote.status}',
            context={'status': quote.status},
        )
    quote.status = outcome
    quote.responded_at = now
    logging.info("quote %s %s", quote.quote_number, outcome.lower())


def accept(quote, now) -> None:
    _respond(quote, now, QuoteStatus.ACCEPTED)


def reject(quote, now) -> None:
    _respond(quote, now, QuoteStatus.REJECTED)
