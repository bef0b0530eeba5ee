import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from quotehub import create_app, db
from quotehub.models import Customer, Organization, Quote
from quotehub.settings.utils import valid_gst_number


def setup_app():
    app = create_app('testing')
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


def make_org(name, **kwargs):
    org = Organization(name=name, slug=name.lower(), **kwargs)
    db.session.add(org)
    db.session.commit()
    return org


def headers(org):
    return {'X-Organization-Id': str(org.id), 'X-User-Id': 'owner'}


SETUP_FORM = {
    'companyName': 'Kiwi Builds Ltd',
    'address'    : '12 Victoria Street, Hamilton 3204',
    'phone'      : '07 838 1234',
    'website'    : 'https://kiwibuilds.co.nz',
    'currency'   : 'nzd',
    'gstNumber'  : '123-456-789',
    'gstRate'    : '0.15',
}


def test_read_settings():
    app = setup_app()
    with app.app_context():
        org = make_org('Alpha')
        resp = app.test_client().get('/settings/', headers=headers(org))
        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert data['name'] == 'Alpha'
        assert data['currency'] == 'NZD'
        assert data['timezone'] == 'Pacific/Auckland'
        assert data['gst_rate'] == '0.15'


def test_settings_need_an_organization():
    app = setup_app()
    with app.app_context():
        client = app.test_client()
        assert client.get('/settings/').status_code == 403
        assert client.put('/settings/', json=SETUP_FORM).status_code == 403


def test_save_setup_form():
    app = setup_app()
    with app.app_context():
        org = make_org('Alpha', is_gst_registered=False)
        resp = app.test_client().put('/settings/', json=SETUP_FORM, headers=headers(org))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['message'] == 'Settings updated successfully'
        data = body['data']
        assert data['name'] == 'Kiwi Builds Ltd'
        assert data['slug'] == 'alpha'
        assert data['currency'] == 'NZD'
        assert data['gst_number'] == '123-456-789'
        assert data['is_gst_registered'] is True
        assert db.session.get(Organization, org.id).website == 'https://kiwibuilds.co.nz'


def test_clearing_gst_number_stops_charging_gst():
    app = setup_app()
    with app.app_context():
        org = make_org('Alpha', gst_number='123456789')
        customer = Customer(organization_id=org.id, first_name='Ana', last_name='Lee',
                            email='ana@example.co.nz')
        db.session.add(customer)
        db.session.commit()
        client = app.test_client()
        quote_payload = {
            'customerId': customer.id,
            'title': 'Deck',
            'items': [{'name': 'Decking', 'quantity': 1, 'unitPrice': 1000}],
        }
        first = client.post('/quotes/', json=quote_payload, headers=headers(org)).get_json()['data']
        assert first['tax_amount'] == '150.00'

        resp = client.put('/settings/', json={'gstNumber': ''}, headers=headers(org))
        assert resp.get_json()['data']['is_gst_registered'] is False

        second = client.post('/quotes/', json=quote_payload, headers=headers(org)).get_json()['data']
        assert second['tax_amount'] == '0.00'
        assert second['total_amount'] == '1000.00'
        # quotes already priced keep their rate
        assert db.session.get(Quote, first['id']).tax_amount == Decimal('150.00')


def test_new_quotes_use_organization_rate_and_currency():
    app = setup_app()
    with app.app_context():
        org = make_org('Alpha', gst_number='123456789')
        customer = Customer(organization_id=org.id, first_name='Ana', last_name='Lee',
                            email='ana@example.co.nz')
        db.session.add(customer)
        db.session.commit()
        client = app.test_client()
        resp = client.put('/settings/', json={'gstRate': '0.125', 'currency': 'AUD'},
                          headers=headers(org))
        assert resp.status_code == 200

        data = client.post('/quotes/', json={
            'customerId': customer.id,
            'title': 'Deck',
            'items': [{'name': 'Decking', 'quantity': 1, 'unitPrice': 1000}],
        }, headers=headers(org)).get_json()['data']
        assert data['tax_rate'] == '0.125'
        assert data['tax_amount'] == '125.00'
        assert data['currency'] == 'AUD'


def test_invalid_settings_rejected():
    app = setup_app()
    with app.app_context():
        org = make_org('Alpha')
        client = app.test_client()
        for patch in (
            {'companyName': ' '},
            {'gstNumber': '12-34'},
            {'gstRate': '1.5'},
            {'gstRate': '0.12345'},
            {'phone': '555'},
            {'email': 'not-an-email'},
            {'currency': 'dollars'},
            {'isGstRegistered': True},
            {'slug': 'taken'},
            {'logoUrl': '/uploads/logo.png'},
        ):
            resp = client.put('/settings/', json=patch, headers=headers(org))
            assert resp.status_code == 400, patch
            assert resp.get_json()['error'] == 'ValidationError'
        stored = db.session.get(Organization, org.id)
        assert stored.name == 'Alpha'
        assert stored.gst_rate == Decimal('0.15')


def test_settings_are_per_organization():
    app = setup_app()
    with app.app_context():
        org_a = make_org('Alpha')
        org_b = make_org('Beta')
        client = app.test_client()
        client.put('/settings/', json={'companyName': 'Alpha Renamed'}, headers=headers(org_a))
        assert client.get('/settings/', headers=headers(org_b)).get_json()['data']['name'] == 'Beta'
        assert db.session.get(Organization, org_a.id).name == 'Alpha Renamed'


def test_gst_number_format():
    assert valid_gst_number('123-456-789')
    assert valid_gst_number('12345678')
    assert not valid_gst_number('1234567')
    assert not valid_gst_number('ABC-456-789')
