import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from quotehub import create_app, db
from quotehub.cli import slugify
from quotehub.models import Customer, Organization, Quote, QuoteSequence, TextItem


def setup_app():
    app = create_app('testing')
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


def test_slugify():
    assert slugify('Demo Company Ltd') == 'demo-company-ltd'
    assert slugify('  Kiwi & Co. ') == 'kiwi-co'


def test_create_org_command():
    app = setup_app()
    with app.app_context():
        runner = app.test_cli_runner()
        result = runner.invoke(args=['quotehub', 'create-org', 'Harbour Plumbing',
                                     '--gst-rate', '0.125', '--gst-number', '111-222-333'])
        assert result.exit_code == 0, result.output
        assert 'harbour-plumbing' in result.output
        org = Organization.query.filter_by(slug='harbour-plumbing').one()
        assert org.gst_rate == Decimal('0.125')
        assert org.gst_number == '111-222-333'
        assert org.is_gst_registered is True


def test_create_org_without_gst_number_is_not_registered():
    app = setup_app()
    with app.app_context():
        runner = app.test_cli_runner()
        result = runner.invoke(args=['quotehub', 'create-org', 'Sole Trader'])
        assert result.exit_code == 0, result.output
        assert 'not GST registered' in result.output
        org = Organization.query.filter_by(slug='sole-trader').one()
        assert org.is_gst_registered is False
        assert org.gst_number is None

        bad = runner.invoke(args=['quotehub', 'create-org', 'Typo Ltd', '--gst-number', '12-34'])
        assert bad.exit_code != 0
        assert Organization.query.filter_by(slug='typo-ltd').first() is None


def test_seed_demo_builds_a_priced_quote():
    app = setup_app()
    with app.app_context():
        runner = app.test_cli_runner()
        result = runner.invoke(args=['quotehub', 'seed-demo'])
        assert result.exit_code == 0, result.output

        org = Organization.query.filter_by(slug='demo-company').one()
        assert Customer.query.filter_by(organization_id=org.id).count() == 2
        quote = Quote.query.filter_by(organization_id=org.id).one()
        assert quote.title == 'Website Redesign'
        assert quote.subtotal == Decimal('5500.00')
        assert quote.tax_amount == Decimal('825.00')
        assert quote.total_amount == Decimal('6325.00')
        assert isinstance(quote.items[-1], TextItem)
        assert quote.quote_number.endswith('-0001')
        assert f'quote {quote.quote_number} total 6325.00' in result.output
        assert QuoteSequence.query.filter_by(organization_id=org.id).one().current_number == 1

        # running again leaves the data alone
        again = runner.invoke(args=['quotehub', 'seed-demo'])
        assert again.exit_code == 0
        assert 'already present' in again.output
        assert Quote.query.count() == 1
