# quotehub/quotes/utils.py

"""Input parsing for the quotes blueprint and service."""

import re
from datetime import date, datetime

from quotehub.errors import ValidationError
from quotehub.pricing import PRICE_PLACES, QUANTITY_PLACES, to_scale

_CAMEL = re.compile(r'(?<!^)(?=[A-Z])')


def snake_keys(data: dict) -> dict:
    """Accept the dashboard's camelCase payloads (``unitPrice``, ``textItems``)."""
    return {_CAMEL.sub('_', k).lower(): v for k, v in (data or {}).items()}


def parse_bool(value, field: str, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ('true', '1', 'yes', 'on'):
        return True
    if isinstance(value, str) and value.lower() in ('false', '0', 'no', 'off', ''):
        return False
    if isinstance(value, int):
        return bool(value)
    raise ValidationError(f'{field} must be true or false', context={'field': field})


def parse_int(value, field: str):
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer', context={'field': field})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer', context={'field': field})


def parse_date(value, field: str = 'valid_until'):
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f'{field} must be an ISO date (YYYY-MM-DD)', context={'field': field})


def parse_currency(value) -> str:
    code = str(value or '').strip().upper()
    if not re.fullmatch(r'[A-Z]{3}', code):
        raise ValidationError('currency must be a three letter ISO code', context={'field': 'currency'})
    return code


def parse_priced_item(data, index=None) -> dict:
    """Validate one priced line.

    Returns the model fields for a ``PricedItem``.  Names are required,
    quantity and unit price must both be strictly positive.
    """
    if not isinstance(data, dict):
        raise ValidationError('Each item must be an object', context={'index': index})
    data = snake_keys(data)
    where = {'index': index} if index is not None else {}

    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError('Every item needs a name', context=where)
    quantity = to_scale(data.get('quantity', 1), QUANTITY_PLACES, 'quantity')
    if quantity <= 0:
        raise ValidationError('Item quantity must be greater than zero', context=where)
    if data.get('unit_price') is None:
        raise ValidationError('Every item needs a unit price', context=where)
    unit_price = to_scale(data['unit_price'], PRICE_PLACES, 'unit_price')
    if unit_price <= 0:
        raise ValidationError('Item unit price must be greater than zero', context=where)

    fields = {
        'name'       : name,
        'description': data.get('description') or '',
        'quantity'   : quantity,
        'unit_price' : unit_price,
        'is_optional': parse_bool(data.get('is_optional'), 'is_optional', False),
        'is_editable': parse_bool(data.get('is_editable'), 'is_editable', True),
        'sort_order' : None,
    }
    if data.get('sort_order') is not None:
        fields['sort_order'] = parse_int(data['sort_order'], 'sort_order')
    return fields


def parse_text_item(data, index=None) -> dict:
    if not isinstance(data, dict):
        raise ValidationError('Each text item must be an object', context={'index': index})
    data = snake_keys(data)
    heading = (data.get('heading') or '').strip()
    # the dashboard sends the body as ``description``
    body = data.get('body', data.get('description')) or ''
    if not heading and not body.strip():
        raise ValidationError('Text items need a heading or a body', context={'index': index})
    fields = {'heading': heading, 'body': body, 'sort_order': None}
    if data.get('sort_order') is not None:
        fields['sort_order'] = parse_int(data['sort_order'], 'sort_order')
    return fields
