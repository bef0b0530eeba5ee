# quotehub/customers/utils.py
"""NZ contact detail checks used when creating or editing customers."""

import re

from quotehub.errors import ValidationError

NZ_PHONE = re.compile(r'^(\+64|64|0)[2-46-9](?:[0-9]{7}|[0-9]{8}|[0-9]{9})$')
NZ_POSTCODE = re.compile(r'^\d{4}$')
EMAIL = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def valid_nz_phone(phone: str) -> bool:
    return bool(NZ_PHONE.match(re.sub(r'[\s()-]', '', phone or '')))


def valid_nz_postcode(postcode: str) -> bool:
    return bool(NZ_POSTCODE.match((postcode or '').strip()))


def clean_customer_fields(data: dict, partial: bool = False) -> dict:
    """Strip and validate customer input.

    With ``partial`` only the keys present are checked, for updates.
    """
    out = {}
    for key in ('first_name', 'last_name', 'email'):
        if key in data or not partial:
            value = (data.get(key) or '').strip()
            if not value:
                raise ValidationError('First name, last name, and email are required',
                                      context={'field': key})
            out[key] = value
    if 'email' in out:
        out['email'] = out['email'].lower()
        if not EMAIL.match(out['email']):
            raise ValidationError('Email address is not valid', context={'field': 'email'})

    for key in ('phone', 'company_name', 'address', 'city', 'postal_code', 'country', 'notes'):
        if key in data:
            value = data[key]
            out[key] = value.strip() if isinstance(value, str) else value

    if out.get('phone') and not valid_nz_phone(out['phone']):
        raise ValidationError('Phone number is not a valid NZ number', context={'field': 'phone'})
    country = out.get('country') or 'New Zealand'
    if out.get('postal_code') and country == 'New Zealand' and not valid_nz_postcode(out['postal_code']):
        raise ValidationError('NZ postal codes have four digits', context={'field': 'postal_code'})
    if not partial or 'country' in data:
        out['country'] = country
    return out
