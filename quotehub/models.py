import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import validates

from quotehub import db
from quotehub.pricing import PRICE_PLACES, QUANTITY_PLACES, RATE_PLACES, line_total, round_money, to_scale


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _money(value):
    return None if value is None else str(round_money(Decimal(value)))


def _plain(value):
    return None if value is None else format(Decimal(value).normalize(), 'f')


class QuoteStatus:
    DRAFT    = 'DRAFT'
    SENT     = 'SENT'
    VIEWED   = 'VIEWED'
    ACCEPTED = 'ACCEPTED'
    REJECTED = 'REJECTED'
    EXPIRED  = 'EXPIRED'

    ALL = (DRAFT, SENT, VIEWED, ACCEPTED, REJECTED, EXPIRED)


class Organization(db.Model):
    __tablename__ = 'organization'
    id                 = db.Column(db.Integer, primary_key=True)
    name               = db.Column(db.String(200), nullable=False)
    slug               = db.Column(db.String(100), unique=True, nullable=False)
    email              = db.Column(db.String(200))
    phone              = db.Column(db.String(50))
    address            = db.Column(db.String(300))
    website            = db.Column(db.String(200))
    currency           = db.Column(db.String(3), nullable=False, default='NZD')
    timezone           = db.Column(db.String(64), nullable=False, default='Pacific/Auckland')
    nz_business_number = db.Column(db.String(20))
    gst_number         = db.Column(db.String(20))
    gst_rate           = db.Column(db.Numeric(5, RATE_PLACES), nullable=False, default=Decimal('0.15'))
    is_gst_registered  = db.Column(db.Boolean, nullable=False, default=True)
    created_at         = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at         = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id'                : self.id,
            'name'              : self.name,
            'slug'              : self.slug,
            'email'             : self.email,
            'phone'             : self.phone,
            'address'           : self.address,
            'website'           : self.website,
            'currency'          : self.currency,
            'timezone'          : self.timezone,
            'nz_business_number': self.nz_business_number,
            'gst_number'        : self.gst_number,
            'gst_rate'          : _plain(self.gst_rate),
            'is_gst_registered' : self.is_gst_registered,
        }


class Customer(db.Model):
    __tablename__ = 'customer'
    __table_args__ = (
        db.UniqueConstraint('organization_id', 'email', name='uq_customer_org_email'),
    )
    id              = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organization.id'), nullable=False, index=True)
    first_name      = db.Column(db.String(100), nullable=False)
    last_name       = db.Column(db.String(100), nullable=False)
    email           = db.Column(db.String(200), nullable=False)
    phone           = db.Column(db.String(50))
    company_name    = db.Column(db.String(200))
    address         = db.Column(db.String(300))
    city            = db.Column(db.String(100))
    postal_code     = db.Column(db.String(10))
    country         = db.Column(db.String(100), nullable=False, default='New Zealand')
    notes           = db.Column(db.Text)
    created_at      = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at      = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    quotes = db.relationship('Quote', back_populates='customer', lazy=True)

    @property
    def full_name(self):
        return " ".join(filter(None, [self.first_name, self.last_name]))

    def to_dict(self):
        return {
            'id'          : self.id,
            'first_name'  : self.first_name,
            'last_name'   : self.last_name,
            'name'        : self.full_name,
            'email'       : self.email,
            'phone'       : self.phone,
            'company_name': self.company_name,
            'address'     : self.address,
            'city'        : self.city,
            'postal_code' : self.postal_code,
            'country'     : self.country,
            'notes'       : self.notes,
        }


class Quote(db.Model):
    __tablename__ = 'quote'
    __table_args__ = (
        db.UniqueConstraint('organization_id', 'quote_number', name='uq_quote_org_number'),
    )
    id                  = db.Column(db.Integer, primary_key=True)
    organization_id     = db.Column(db.Integer, db.ForeignKey('organization.id'), nullable=False, index=True)
    customer_id         = db.Column(db.Integer, db.ForeignKey('customer.id'), nullable=False)
    quote_number        = db.Column(db.String(32), nullable=False)
    title               = db.Column(db.String(200), nullable=False)
    description         = db.Column(db.Text)
    status              = db.Column(db.String(16), nullable=False, default=QuoteStatus.DRAFT)
    currency            = db.Column(db.String(3), nullable=False, default='NZD')
    subtotal            = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    tax_rate            = db.Column(db.Numeric(5, RATE_PLACES), nullable=False, default=Decimal('0.15'))
    tax_amount          = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal('0'))
    discount_amount     = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    total_amount        = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    valid_until         = db.Column(db.Date)
    terms_conditions    = db.Column(db.Text)
    notes               = db.Column(db.Text)
    created_by          = db.Column(db.String(64))
    public_token        = db.Column(db.String(32), unique=True, nullable=False,
                                    default=lambda: uuid.uuid4().hex)
    sent_at             = db.Column(db.DateTime)
    viewed_at           = db.Column(db.DateTime)
    responded_at        = db.Column(db.DateTime)
    created_at          = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at          = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    customer = db.relationship('Customer', back_populates='quotes')
    items = db.relationship(
        'QuoteItem',
        back_populates='quote',
        order_by='QuoteItem.sort_order',
        cascade='all, delete-orphan',
    )
    views = db.relationship(
        'QuoteView',
        back_populates='quote',
        order_by='QuoteView.viewed_at',
        cascade='all, delete-orphan',
    )

    @property
    def priced_items(self):
        return [i for i in self.items if isinstance(i, PricedItem)]

    @property
    def text_items(self):
        return [i for i in self.items if isinstance(i, TextItem)]

    def apply_totals(self, totals):
        """Copy a ``pricing.Totals`` onto the quote's stored figures."""
        self.subtotal            = totals.subtotal
        self.tax_rate            = totals.tax_rate
        self.tax_amount          = totals.tax_amount
        self.discount_percentage = totals.discount_percentage
        self.discount_amount     = totals.discount_amount
        self.total_amount        = totals.total_amount

    def to_dict(self, include_items=True):
        data = {
            'id'                 : self.id,
            'organization_id'    : self.organization_id,
            'customer_id'        : self.customer_id,
            'quote_number'       : self.quote_number,
            'title'              : self.title,
            'description'        : self.description,
            'status'             : self.status,
            'currency'           : self.currency,
            'subtotal'           : _money(self.subtotal),
            'tax_rate'           : _plain(self.tax_rate),
            'tax_amount'         : _money(self.tax_amount),
            'discount_percentage': _plain(self.discount_percentage),
            'discount_amount'    : _money(self.discount_amount),
            'total_amount'       : _money(self.total_amount),
            'valid_until'        : self.valid_until.isoformat() if self.valid_until else None,
            'terms_conditions'   : self.terms_conditions,
            'notes'              : self.notes,
            'created_by'         : self.created_by,
            'sent_at'            : self.sent_at.isoformat() if self.sent_at else None,
            'viewed_at'          : self.viewed_at.isoformat() if self.viewed_at else None,
            'responded_at'       : self.responded_at.isoformat() if self.responded_at else None,
            'view_count'         : len(self.views),
        }
        if include_items:
            data['items'] = [i.to_dict() for i in self.items]
        return data


class QuoteItem(db.Model):
    """One line of a quote.

    Priced lines and free-text blocks share this table and a single
    ``sort_order`` sequence; ``kind`` tells them apart and SQLAlchemy loads
    each row as a ``PricedItem`` or ``TextItem``.
    """
    __tablename__ = 'quote_item'
    id         = db.Column(db.Integer, primary_key=True)
    quote_id   = db.Column(
        db.Integer,
        db.ForeignKey('quote.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    kind       = db.Column(db.String(16), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    quote = db.relationship('Quote', back_populates='items')

    __mapper_args__ = {'polymorphic_on': kind}

    def to_dict(self):
        return {'id': self.id, 'kind': self.kind, 'sort_order': self.sort_order}


class PricedItem(QuoteItem):
    KIND = 'priced'

    name        = db.Column(db.String(200))
    description = db.Column(db.Text)
    quantity    = db.Column(db.Numeric(12, QUANTITY_PLACES))
    unit_price  = db.Column(db.Numeric(12, PRICE_PLACES))
    total_price = db.Column(db.Numeric(16, 5))
    is_optional = db.Column(db.Boolean, default=False)
    is_editable = db.Column(db.Boolean, default=True)

    __mapper_args__ = {'polymorphic_identity': KIND}

    @validates('quantity', 'unit_price')
    def _recompute_total(self, key, value):
        places = QUANTITY_PLACES if key == 'quantity' else PRICE_PLACES
        value = to_scale(value, places, key)
        quantity = value if key == 'quantity' else self.quantity
        unit_price = value if key == 'unit_price' else self.unit_price
        if quantity is not None and unit_price is not None:
            self.total_price = line_total(Decimal(quantity), Decimal(unit_price))
        return value

    def to_dict(self):
        data = super().to_dict()
        data.update({
            'name'       : self.name,
            'description': self.description,
            'quantity'   : _plain(self.quantity),
            'unit_price' : _money(self.unit_price),
            'total_price': _plain(self.total_price),
            'is_optional': bool(self.is_optional),
            'is_editable': bool(self.is_editable),
        })
        return data


class TextItem(QuoteItem):
    KIND = 'text'

    heading = db.Column(db.String(200))
    body    = db.Column(db.Text)

    __mapper_args__ = {'polymorphic_identity': KIND}

    def to_dict(self):
        data = super().to_dict()
        data.update({'heading': self.heading, 'body': self.body})
        return data


class QuoteView(db.Model):
    __tablename__ = 'quote_view'
    id         = db.Column(db.Integer, primary_key=True)
    quote_id   = db.Column(
        db.Integer,
        db.ForeignKey('quote.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    viewer_ip  = db.Column(db.String(64))
    user_agent = db.Column(db.String(300))
    viewed_at  = db.Column(db.DateTime, nullable=False, default=utcnow)

    quote = db.relationship('Quote', back_populates='views')


class QuoteSequence(db.Model):
    """Per-organization, per-year counter behind quote numbers."""
    __tablename__ = 'quote_sequence'
    __table_args__ = (
        db.UniqueConstraint('organization_id', 'year', name='uq_sequence_org_year'),
    )
    id              = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organization.id'), nullable=False)
    year            = db.Column(db.Integer, nullable=False)
    prefix          = db.Column(db.String(16), nullable=False, default='QT')
    current_number  = db.Column(db.Integer, nullable=False, default=0)
