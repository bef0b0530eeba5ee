# quotehub/customers/service.py

import logging

from quotehub.customers.utils import clean_customer_fields
from quotehub.errors import ConflictError, ValidationError
from quotehub.models import Customer, Quote
from quotehub.persistence import unit_of_work
from quotehub.quotes.utils import parse_int, snake_keys
from quotehub.scoping import ScopedRepository

CUSTOMER_FIELDS = ('first_name', 'last_name', 'email', 'phone', 'company_name',
                   'address', 'city', 'postal_code', 'country', 'notes')


class CustomerService:
    def __init__(self, session, caller):
        self.session = session
        self.caller = caller
        self.repo = ScopedRepository(session, caller.organization_id)

    def list_customers(self):
        return self.repo.query(Customer).order_by(Customer.created_at.desc(), Customer.id.desc()).all()

    def get_customer(self, customer_id) -> Customer:
        return self.repo.get(Customer, parse_int(customer_id, 'customer_id'), 'Customer')

    def create_customer(self, data) -> Customer:
        data = snake_keys(data)
        self._reject_unknown(data)
        fields = clean_customer_fields(data)
        self._ensure_email_free(fields['email'])
        customer = Customer(**fields)
        with unit_of_work(self.session, 'Creating customer'):
            self.repo.add(customer)
        logging.info("customer %s created for org=%s", customer.id, customer.organization_id)
        return customer

    def update_customer(self, customer_id, patch) -> Customer:
        patch = snake_keys(patch)
        self._reject_unknown(patch)
        customer = self.get_customer(customer_id)
        fields = clean_customer_fields(patch, partial=True)
        if 'email' in fields and fields['email'] != customer.email:
            self._ensure_email_free(fields['email'])
        with unit_of_work(self.session, 'Updating customer'):
            for key, value in fields.items():
                setattr(customer, key, value)
        return customer

    def delete_customer(self, customer_id) -> None:
        customer = self.get_customer(customer_id)
        quote_count = self.repo.query(Quote).filter(Quote.customer_id == customer.id).count()
        if quote_count:
            logging.info("refusing to delete customer %s with %s quote(s)", customer.id, quote_count)
            raise ConflictError('Cannot delete customer with existing quotes',
                                context={'quotes': quote_count})
        with unit_of_work(self.session, 'Deleting customer'):
            self.repo.delete(customer)

    def _ensure_email_free(self, email):
        exists = self.repo.query(Customer).filter(Customer.email == email).first()
        if exists is not None:
            raise ConflictError('Customer with this email already exists',
                                context={'field': 'email'})

    @staticmethod
    def _reject_unknown(data):
        unknown = sorted(set(data) - set(CUSTOMER_FIELDS))
        if unknown:
            raise ValidationError('Unknown fields: ' + ', '.join(unknown),
                                  context={'fields': unknown})
