# quotehub/settings/utils.py
"""Validation for an organization's business and GST settings."""

import re

from quotehub.customers.utils import EMAIL, valid_nz_phone
from quotehub.errors import ValidationError
from quotehub.pricing import RATE_PLACES, to_scale
from quotehub.quotes.utils import parse_currency

# IRD numbers double as GST numbers: 8 or 9 digits, usually written 123-456-789
GST_NUMBER = re.compile(r'^\d{8,9}$')

TEXT_FIELDS = ('address', 'website', 'nz_business_number', 'timezone')


def gst_registered(gst_number) -> bool:
    return bool((gst_number or '').strip())


def valid_gst_number(gst_number: str) -> bool:
    return bool(GST_NUMBER.match(re.sub(r'[\s-]', '', gst_number or '')))


def clean_settings(data: dict, partial: bool = True) -> dict:
    """Strip and validate organization settings.

    Only the keys present are checked unless ``partial`` is false, in
    which case the company name is required.
    """
    out = {}
    if 'name' in data or not partial:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError('Company name is required', context={'field': 'name'})
        out['name'] = name

    if 'email' in data:
        email = (data['email'] or '').strip().lower() or None
        if email and not EMAIL.match(email):
            raise ValidationError('Email address is not valid', context={'field': 'email'})
        out['email'] = email
    if 'phone' in data:
        phone = (data['phone'] or '').strip() or None
        if phone and not valid_nz_phone(phone):
            raise ValidationError('Phone number is not a valid NZ number', context={'field': 'phone'})
        out['phone'] = phone
    for key in TEXT_FIELDS:
        if key in data:
            out[key] = (data[key] or '').strip() or None
    if out.get('timezone') is None and 'timezone' in out:
        out['timezone'] = 'Pacific/Auckland'

    if 'currency' in data:
        out['currency'] = parse_currency(data['currency'] or 'NZD')
    if 'gst_number' in data:
        gst_number = (data['gst_number'] or '').strip() or None
        if gst_number and not valid_gst_number(gst_number):
            raise ValidationError('GST number must have 8 or 9 digits', context={'field': 'gst_number'})
        out['gst_number'] = gst_number
    if data.get('gst_rate') is not None:
        rate = to_scale(data['gst_rate'], RATE_PLACES, 'gst_rate')
        if rate < 0 or rate > 1:
            raise ValidationError('gst_rate must be between 0 and 1', context={'field': 'gst_rate'})
        out['gst_rate'] = rate
    return out
