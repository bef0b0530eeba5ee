# quotehub/pricing.py
"""GST-aware totals for quotes.

All arithmetic is done with ``Decimal``.  Line totals are kept exact; the
quote-level figures are rounded half-up to cents.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Tuple

from quotehub.errors import ValidationError

CENT = Decimal('0.01')
ZERO = Decimal('0')
HUNDRED = Decimal('100')

# scales of the stored columns
QUANTITY_PLACES = 3
PRICE_PLACES = 2
RATE_PLACES = 4


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    total_amount: Decimal


def to_decimal(value, field: str = 'value') -> Decimal:
    """Parse ``value`` into a Decimal without going through binary floats."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValidationError(f'{field} must be a number', context={'field': field})
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f'{field} must be a number', context={'field': field})
    if not result.is_finite():
        raise ValidationError(f'{field} must be a finite number', context={'field': field})
    return result


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_scale(value, places: int, field: str = 'value') -> Decimal:
    """Parse ``value`` at the scale of the column it is stored in.

    A value with more than ``places`` decimal places is a ValidationError,
    never rounded.
    """
    result = to_decimal(value, field)
    step = Decimal(1).scaleb(-places)
    if result != result.quantize(step, rounding=ROUND_HALF_UP):
        raise ValidationError(f'{field} can have at most {places} decimal places',
                              context={'field': field})
    return result.quantize(step)


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return quantity * unit_price


def compute_totals(
    items: Iterable[Tuple[Decimal, Decimal]],
    tax_rate,
    discount_percentage=None,
    discount_amount=None,
) -> Totals:
    """Compute subtotal, tax, discount and grand total.

    ``items`` is an iterable of ``(quantity, unit_price)`` pairs for priced
    lines only.  ``tax_rate`` is a fraction (``0.15`` for NZ GST).  A
    discount is either a percentage in percent (``10`` is 10%) or an
    absolute amount, not both.
    """
    rate = to_decimal(tax_rate, 'tax_rate')
    if rate < ZERO or rate > 1:
        raise ValidationError('tax_rate must be between 0 and 1',
                              context={'field': 'tax_rate'})

    subtotal = ZERO
    for index, (quantity, unit_price) in enumerate(items):
        quantity = to_decimal(quantity, 'quantity')
        unit_price = to_decimal(unit_price, 'unit_price')
        if quantity < ZERO or unit_price < ZERO:
            raise ValidationError('quantity and unit_price must not be negative',
                                  context={'index': index})
        subtotal += line_total(quantity, unit_price)
    subtotal = round_money(subtotal)

    tax_amount = round_money(subtotal * rate)

    percentage: Optional[Decimal] = None
    if discount_percentage is not None and discount_amount is not None:
        raise ValidationError('Give either discount_percentage or discount_amount, not both')
    if discount_percentage is not None:
        percentage = to_decimal(discount_percentage, 'discount_percentage')
        if percentage < ZERO or percentage > HUNDRED:
            raise ValidationError('discount_percentage must be between 0 and 100',
                                  context={'field': 'discount_percentage'})
        discount = round_money(subtotal * percentage / HUNDRED)
    elif discount_amount is not None:
        discount = round_money(to_decimal(discount_amount, 'discount_amount'))
        if discount < ZERO:
            raise ValidationError('discount_amount must not be negative',
                                  context={'field': 'discount_amount'})
    else:
        discount = ZERO
    if discount > subtotal:
        raise ValidationError('discount cannot exceed the subtotal',
                              context={'field': 'discount_amount'})

    return Totals(
        subtotal=subtotal,
        tax_rate=rate,
        tax_amount=tax_amount,
        discount_percentage=percentage if percentage is not None else ZERO,
        discount_amount=discount,
        total_amount=subtotal + tax_amount - discount,
    )
