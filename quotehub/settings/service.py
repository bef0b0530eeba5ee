# quotehub/settings/service.py

import logging

from quotehub.errors import NotFoundError, ValidationError
from quotehub.models import Organization
from quotehub.persistence import unit_of_work
from quotehub.quotes.utils import snake_keys
from quotehub.scoping import ScopedRepository
from quotehub.settings.utils import clean_settings, gst_registered

SETTINGS_FIELDS = ('name', 'email', 'phone', 'address', 'website', 'currency', 'timezone',
                   'nz_business_number', 'gst_number', 'gst_rate')
LOCKED_FIELDS = ('id', 'slug', 'is_gst_registered')


class SettingsService:
    """The caller's own organization record.

    GST registration follows the GST number: an organization with a
    number is registered, one without charges no GST on new quotes.
    Quotes already created keep the rate they were priced with.
    """

    def __init__(self, session, caller):
        self.session = session
        self.caller = caller
        self.repo = ScopedRepository(session, caller.organization_id)

    def get_settings(self) -> Organization:
        org = self.session.get(Organization, self.repo.organization_id)
        if org is None:
            raise NotFoundError('Organization not found')
        return org

    def update_settings(self, patch) -> Organization:
        patch = snake_keys(patch)
        # the dashboard's setup form calls it companyName
        if 'company_name' in patch:
            patch.setdefault('name', patch.pop('company_name'))
        for locked in LOCKED_FIELDS:
            if locked in patch:
                raise ValidationError(f'{locked} cannot be changed directly', context={'field': locked})
        unknown = sorted(set(patch) - set(SETTINGS_FIELDS))
        if unknown:
            raise ValidationError('Unknown fields: ' + ', '.join(unknown),
                                  context={'fields': unknown})

        fields = clean_settings(patch)
        org = self.get_settings()
        with unit_of_work(self.session, 'Updating settings'):
            for key, value in fields.items():
                setattr(org, key, value)
            if 'gst_number' in fields:
                org.is_gst_registered = gst_registered(fields['gst_number'])
        logging.info("settings updated for org=%s gst_registered=%s rate=%s",
                     org.id, org.is_gst_registered, org.gst_rate)
        return org
