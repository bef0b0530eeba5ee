# quotehub/portal/service.py
"""Customer-facing side of a sent quote, addressed by its public token."""

from quotehub.errors import NotFoundError
from quotehub.models import Quote, QuoteStatus, utcnow
from quotehub.persistence import unit_of_work
from quotehub.quotes import lifecycle


class PortalService:
    def __init__(self, session, clock=utcnow):
        self.session = session
        self.clock = clock

    def _by_token(self, token) -> Quote:
        quote = self.session.query(Quote).filter(Quote.public_token == str(token)).one_or_none()
        # drafts stay invisible to customers
        if quote is None or quote.status == QuoteStatus.DRAFT:
            raise NotFoundError('Quote not found')
        return quote

    def view(self, token, viewer_ip=None, user_agent=None) -> Quote:
        quote = self._by_token(token)
        with unit_of_work(self.session, 'Recording quote view'):
            now = self.clock()
            lifecycle.expire_if_due(quote, now)
            lifecycle.record_view(quote, now, viewer_ip, user_agent)
        return quote

    def accept(self, token) -> Quote:
        return self._respond(token, lifecycle.accept)

    def reject(self, token) -> Quote:
        return self._respond(token, lifecycle.reject)

    def _respond(self, token, transition) -> Quote:
        quote = self._by_token(token)
        now = self.clock()
        # an expired quote stays expired even though the response is refused
        with unit_of_work(self.session, 'Expiring quote'):
            lifecycle.expire_if_due(quote, now)
        with unit_of_work(self.session, 'Recording quote response'):
            transition(quote, now)
        return quote
