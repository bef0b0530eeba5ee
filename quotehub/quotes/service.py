# quotehub/quotes/service.py
"""Quote aggregate: a quote and its items are created, changed and
removed together, always inside the caller's organization."""

import logging
from decimal import Decimal

from quotehub.errors import ConflictError, NotFoundError, ValidationError
from quotehub.models import (
    Customer,
    Organization,
    PricedItem,
    Quote,
    QuoteStatus,
    TextItem,
    utcnow,
)
from quotehub.persistence import unit_of_work
from quotehub.pricing import PRICE_PLACES, RATE_PLACES, compute_totals, to_decimal, to_scale
from quotehub.quotes import lifecycle
from quotehub.quotes.numbering import next_quote_number
from quotehub.quotes.utils import (
    parse_currency,
    parse_date,
    parse_int,
    parse_priced_item,
    parse_text_item,
    snake_keys,
)
from quotehub.scoping import ScopedRepository

# fields a caller may set besides customer, title and items
QUOTE_FIELDS = (
    'description',
    'currency',
    'tax_rate',
    'discount_percentage',
    'discount_amount',
    'valid_until',
    'terms_conditions',
    'notes',
)
# totals are always recomputed from the items; these are accepted but unused
CLIENT_TOTALS = ('subtotal', 'tax_amount', 'total_amount')

PRICED_ITEM_FIELDS = ('name', 'description', 'quantity', 'unit_price',
                      'is_optional', 'is_editable', 'sort_order')
TEXT_ITEM_FIELDS = ('heading', 'body', 'description', 'sort_order')


class QuoteService:
    """Organization-scoped operations on quotes.

    ``session`` is the SQLAlchemy session to work in and ``caller`` the
    ``CallerContext`` of the request.  ``config`` supplies
    ``DEFAULT_TAX_RATE``, ``DEFAULT_CURRENCY`` and ``QUOTE_NUMBER_PREFIX``.
    """

    def __init__(self, session, caller, config=None, clock=utcnow):
        self.session = session
        self.caller = caller
        self.repo = ScopedRepository(session, caller.organization_id)
        self.config = config or {}
        self.clock = clock

    # -- reads -------------------------------------------------------------

    def get_quote(self, quote_id) -> Quote:
        quote = self._load(quote_id)
        with unit_of_work(self.session, 'Reading quote'):
            lifecycle.expire_if_due(quote, self.clock())
        return quote

    def list_quotes(self, status=None) -> list:
        if status is not None:
            status = str(status).upper()
            if status not in QuoteStatus.ALL:
                raise ValidationError(f'Unknown status {status}', context={'field': 'status'})
        self._expire_lapsed()
        query = self.repo.query(Quote)
        if status:
            query = query.filter(Quote.status == status)
        return query.order_by(Quote.created_at.desc(), Quote.id.desc()).all()

    # -- quote aggregate ---------------------------------------------------

    def create_quote(self, customer_id, title, items, text_items=None, **overrides) -> Quote:
        overrides = snake_keys(overrides)
        title = (title or '').strip()
        if not title:
            raise ValidationError('Title is required', context={'field': 'title'})
        if not items:
            raise ValidationError('At least one item is required', context={'field': 'items'})
        if customer_id in (None, ''):
            raise ValidationError('Customer is required', context={'field': 'customer_id'})

        status = overrides.pop('status', None)
        if status is not None and str(status).upper() != QuoteStatus.DRAFT:
            raise ValidationError('New quotes always start as DRAFT', context={'field': 'status'})
        client_totals = {k: overrides.pop(k) for k in CLIENT_TOTALS if k in overrides}
        self._reject_unknown(overrides, QUOTE_FIELDS)

        customer = self.repo.get(Customer, parse_int(customer_id, 'customer_id'), 'Customer')
        item_objects = self._build_items(items, text_items or [])

        quote = Quote(
            customer_id=customer.id,
            title=title,
            status=QuoteStatus.DRAFT,
            currency=self._default_currency(),
            tax_rate=self._default_tax_rate(),
            created_by=self.caller.user_id,
        )
        self._apply_fields(quote, overrides)
        quote.items = item_objects
        self._recompute(quote)
        self._compare_client_totals(quote, client_totals)

        with unit_of_work(self.session, 'Creating quote'):
            quote.quote_number = next_quote_number(
                self.session,
                self.repo.organization_id,
                self.clock().year,
                self.config.get('QUOTE_NUMBER_PREFIX', 'QT'),
            )
            self.repo.add(quote)
        logging.info("quote %s created for org=%s customer=%s total=%s",
                     quote.quote_number, quote.organization_id, customer.id, quote.total_amount)
        return quote

    def update_quote(self, quote_id, patch) -> Quote:
        patch = snake_keys(patch)
        quote = self._load(quote_id)
        lifecycle.ensure_editable(quote)

        for locked in ('quote_number', 'status', 'organization_id') + CLIENT_TOTALS:
            if locked in patch:
                raise ValidationError(f'{locked} cannot be changed directly', context={'field': locked})
        self._reject_unknown(patch, QUOTE_FIELDS + ('title', 'customer_id', 'items', 'text_items'))

        with unit_of_work(self.session, 'Updating quote'):
            self._apply_patch(quote, patch)
            self._recompute(quote)
        logging.info("quote %s updated", quote.quote_number)
        return quote

    def _apply_patch(self, quote, patch):
        if 'title' in patch:
            title = (patch['title'] or '').strip()
            if not title:
                raise ValidationError('Title is required', context={'field': 'title'})
            quote.title = title
        if 'customer_id' in patch:
            customer = self.repo.get(Customer, parse_int(patch['customer_id'], 'customer_id'), 'Customer')
            quote.customer_id = customer.id
        self._apply_fields(quote, {k: patch[k] for k in QUOTE_FIELDS if k in patch})

        if 'items' in patch or 'text_items' in patch:
            items = patch.get('items')
            if items is None:
                items = [self._item_input(i) for i in quote.priced_items]
            if not items:
                raise ValidationError('At least one item is required', context={'field': 'items'})
            texts = patch.get('text_items')
            if texts is None:
                texts = [self._item_input(i) for i in quote.text_items]
            quote.items = self._build_items(items, texts)

    def delete_quote(self, quote_id) -> None:
        quote = self._load(quote_id)
        if quote.status == QuoteStatus.ACCEPTED:
            raise ConflictError('Accepted quotes cannot be deleted',
                                context={'status': quote.status})
        number = quote.quote_number
        with unit_of_work(self.session, 'Deleting quote'):
            self.repo.delete(quote)
        logging.info("quote %s deleted", number)

    def send_quote(self, quote_id) -> Quote:
        quote = self._load(quote_id)
        with unit_of_work(self.session, 'Sending quote'):
            lifecycle.send(quote, self.clock())
        return quote

    # -- items -------------------------------------------------------------

    def add_item(self, quote_id, data) -> Quote:
        data = snake_keys(data)
        quote = self._load(quote_id)
        lifecycle.ensure_editable(quote)
        kind = data.pop('kind', PricedItem.KIND)
        next_order = max((i.sort_order for i in quote.items), default=-1) + 1
        if kind == PricedItem.KIND:
            fields = parse_priced_item(data)
        elif kind == TextItem.KIND:
            fields = parse_text_item(data)
        else:
            raise ValidationError(f'Unknown item kind {kind}', context={'field': 'kind'})
        if fields['sort_order'] is None:
            fields['sort_order'] = next_order
        item = (PricedItem if kind == PricedItem.KIND else TextItem)(**fields)
        with unit_of_work(self.session, 'Adding item'):
            quote.items.append(item)
            self._recompute(quote)
        return quote

    def add_text_item(self, quote_id, data) -> Quote:
        return self.add_item(quote_id, {**snake_keys(data), 'kind': TextItem.KIND})

    def update_item(self, quote_id, item_id, patch) -> Quote:
        patch = snake_keys(patch)
        quote = self._load(quote_id)
        lifecycle.ensure_editable(quote)
        item = self._item(quote, item_id)

        if isinstance(item, PricedItem):
            self._reject_unknown(patch, PRICED_ITEM_FIELDS)
            fields = parse_priced_item({**self._item_input(item), **patch})
        else:
            self._reject_unknown(patch, TEXT_ITEM_FIELDS)
            if 'description' in patch and 'body' not in patch:
                patch['body'] = patch.pop('description')
            fields = parse_text_item({**self._item_input(item), **patch})
        if fields['sort_order'] is None:
            fields['sort_order'] = item.sort_order
        with unit_of_work(self.session, 'Updating item'):
            for key, value in fields.items():
                setattr(item, key, value)
            self._recompute(quote)
        return quote

    def remove_item(self, quote_id, item_id) -> Quote:
        quote = self._load(quote_id)
        lifecycle.ensure_editable(quote)
        item = self._item(quote, item_id)
        with unit_of_work(self.session, 'Removing item'):
            quote.items.remove(item)
            self._recompute(quote)
        return quote

    # -- helpers -----------------------------------------------------------

    def _load(self, quote_id) -> Quote:
        return self.repo.get(Quote, parse_int(quote_id, 'quote_id'), 'Quote')

    def _item(self, quote, item_id):
        item_id = parse_int(item_id, 'item_id')
        for item in quote.items:
            if item.id == item_id:
                return item
        raise NotFoundError('Item not found', context={'id': item_id})

    def _expire_lapsed(self):
        today = self.clock().date()
        lapsed = (
            self.repo.query(Quote)
            .filter(Quote.status.in_(lifecycle.EXPIRABLE), Quote.valid_until < today)
            .all()
        )
        if not lapsed:
            return
        with unit_of_work(self.session, 'Expiring quotes'):
            for quote in lapsed:
                lifecycle.expire_if_due(quote, self.clock())

    def _organization(self):
        return self.session.get(Organization, self.repo.organization_id)

    def _default_currency(self) -> str:
        org = self._organization()
        if org is not None and org.currency:
            return org.currency
        return self.config.get('DEFAULT_CURRENCY', 'NZD')

    def _default_tax_rate(self) -> Decimal:
        org = self._organization()
        if org is not None and not org.is_gst_registered:
            return Decimal('0')
        if org is not None and org.gst_rate is not None:
            return Decimal(org.gst_rate)
        return to_decimal(self.config.get('DEFAULT_TAX_RATE', '0.15'), 'tax_rate')

    def _apply_fields(self, quote, fields):
        if 'description' in fields:
            quote.description = fields['description']
        if 'currency' in fields:
            quote.currency = parse_currency(fields['currency'])
        if fields.get('tax_rate') is not None:
            quote.tax_rate = to_scale(fields['tax_rate'], RATE_PLACES, 'tax_rate')
        if fields.get('discount_percentage') is not None and fields.get('discount_amount') is not None:
            raise ValidationError('Give either discount_percentage or discount_amount, not both')
        if fields.get('discount_percentage') is not None:
            quote.discount_percentage = to_scale(fields['discount_percentage'], 2, 'discount_percentage')
            quote.discount_amount = Decimal('0')
        if fields.get('discount_amount') is not None:
            quote.discount_amount = to_scale(fields['discount_amount'], PRICE_PLACES, 'discount_amount')
            quote.discount_percentage = Decimal('0')
        if 'valid_until' in fields:
            quote.valid_until = parse_date(fields['valid_until'])
        if 'terms_conditions' in fields:
            quote.terms_conditions = fields['terms_conditions']
        if 'notes' in fields:
            quote.notes = fields['notes']

    def _build_items(self, items, text_items) -> list:
        if not isinstance(items, list) or not isinstance(text_items, list):
            raise ValidationError('items and text_items must be lists')
        built = []
        for index, data in enumerate(items):
            fields = parse_priced_item(data, index)
            if fields['sort_order'] is None:
                fields['sort_order'] = index
            built.append(PricedItem(**fields))
        for index, data in enumerate(text_items):
            fields = parse_text_item(data, index)
            if fields['sort_order'] is None:
                fields['sort_order'] = len(items) + index
            built.append(TextItem(**fields))
        built.sort(key=lambda item: item.sort_order)
        return built

    @staticmethod
    def _item_input(item) -> dict:
        if isinstance(item, PricedItem):
            return {
                'name'       : item.name,
                'description': item.description,
                'quantity'   : item.quantity,
                'unit_price' : item.unit_price,
                'is_optional': item.is_optional,
                'is_editable': item.is_editable,
                'sort_order' : item.sort_order,
            }
        return {'heading': item.heading, 'body': item.body, 'sort_order': item.sort_order}

    def _recompute(self, quote):
        discount = {}
        if quote.discount_percentage:
            discount['discount_percentage'] = quote.discount_percentage
        elif quote.discount_amount:
            discount['discount_amount'] = quote.discount_amount
        totals = compute_totals(
            [(i.quantity, i.unit_price) for i in quote.priced_items],
            quote.tax_rate,
            **discount,
        )
        quote.apply_totals(totals)
        return totals

    @staticmethod
    def _compare_client_totals(quote, client_totals):
        for key, value in client_totals.items():
            if value is None:
                continue
            try:
                supplied = to_decimal(value, key)
            except ValidationError:
                supplied = None
            if supplied != getattr(quote, key):
                logging.warning("ignoring client %s=%r for new quote, computed %s",
                                key, value, getattr(quote, key))

    @staticmethod
    def _reject_unknown(data, allowed):
        unknown = sorted(set(data) - set(allowed))
        if unknown:
            raise ValidationError('Unknown fields: ' + ', '.join(unknown),
                                  context={'fields': unknown})
