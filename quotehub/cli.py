import logging
import re

import click
from flask import current_app

from quotehub import db
from quotehub.customers.service import CustomerService
from quotehub.errors import ValidationError
from quotehub.models import Organization
from quotehub.quotes.service import QuoteService
from quotehub.scoping import CallerContext
from quotehub.settings.utils import clean_settings, gst_registered


def slugify(name: str) -> str:
    return re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-')


def create_organization(name, slug=None, gst_rate='0.15', gst_number=None) -> Organization:
    fields = clean_settings({'name': name, 'gst_rate': gst_rate, 'gst_number': gst_number},
                            partial=False)
    org = Organization(
        slug=slug or slugify(fields['name']),
        is_gst_registered=gst_registered(fields['gst_number']),
        **fields
    )
    db.session.add(org)
    db.session.commit()
    return org


@click.group("quotehub")
def quotehub_cli() -> None:
    """Quote management commands."""


@quotehub_cli.command("create-org")
@click.argument("name")
@click.option("--slug", default=None, help="URL slug, derived from NAME if omitted")
@click.option("--gst-rate", default="0.15", show_default=True, help="GST rate as a fraction")
@click.option("--gst-number", default=None)
def create_org_command(name, slug, gst_rate, gst_number) -> None:
    try:
        org = create_organization(name, slug, gst_rate, gst_number)
    except ValidationError as err:
        raise click.BadParameter(err.message)
    state = 'GST registered' if org.is_gst_registered else 'not GST registered'
    click.echo(f"organization {org.id} ({org.slug}) created, {state}")


@quotehub_cli.command("seed-demo")
def seed_demo_command() -> None:
    """Create a demo organization with customers and a draft quote."""
    logging.basicConfig(level=logging.INFO)
    if Organization.query.filter_by(slug='demo-company').first():
        click.echo("demo organization already present")
        return
    org = create_organization('Demo Company Ltd', 'demo-company', gst_number='123-456-789')
    org.email = 'hello@democompany.co.nz'
    org.phone = '+64 9 123 4567'
    org.address = '123 Queen Street, Auckland 1010, New Zealand'
    org.nz_business_number = '9429046731234'
    db.session.commit()

    caller = CallerContext(user_id='seed', organization_id=org.id)
    customers = CustomerService(db.session, caller)
    sarah = customers.create_customer({
        'first_name'  : 'Sarah',
        'last_name'   : 'Wilson',
        'email'       : 'sarah@wilsonconstruction.co.nz',
        'phone'       : '021 555 0123',
        'company_name': 'Wilson Construction Ltd',
        'city'        : 'Auckland',
        'postal_code' : '1010',
    })
    customers.create_customer({
        'first_name'  : 'Mike',
        'last_name'   : 'Thompson',
        'email'       : 'mike@thompsondesign.co.nz',
        'company_name': 'Thompson Design Studio',
        'city'        : 'Wellington',
        'postal_code' : '6011',
    })

    quote = QuoteService(db.session, caller, current_app.config).create_quote(
        customer_id=sarah.id,
        title='Website Redesign',
        items=[
            {'name': 'Web Design', 'quantity': 1, 'unit_price': '4000'},
            {'name': 'Content migration (hours)', 'quantity': 10, 'unit_price': '150'},
        ],
        text_items=[{'heading': 'Timeline', 'body': 'Delivery within six weeks of acceptance.'}],
        terms_conditions='50% deposit required before work begins.',
    )
    click.echo(f"seeded {org.slug}: quote {quote.quote_number} total {quote.total_amount}")
