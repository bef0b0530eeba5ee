import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from quotehub import create_app, db
from quotehub.customers.utils import valid_nz_phone, valid_nz_postcode
from quotehub.models import Customer, Organization, Quote


def setup_app():
    app = create_app('testing')
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


def make_org(name):
    org = Organization(name=name, slug=name.lower())
    db.session.add(org)
    db.session.commit()
    return org


def headers(org):
    return {'X-Organization-Id': str(org.id), 'X-User-Id': 'user-1'}


NEW_CUSTOMER = {
    'firstName'  : 'Sarah',
    'lastName'   : 'Wilson',
    'email'      : 'Sarah@WilsonConstruction.co.nz',
    'phone'      : '021 555 0123',
    'postalCode' : '1010',
    'companyName': 'Wilson Construction Ltd',
}


def test_create_and_fetch_customer():
    app = setup_app()
    with app.app_context():
        org = make_org('Alpha')
        client = app.test_client()
        resp = client.post('/customers/', json=NEW_CUSTOMER, headers=headers(org))
        assert resp.status_code == 201
        body = resp.get_json()
        assert body['success'] is True
        assert body['data']['email'] == 'sarah@wilsonconstruction.co.nz'
        assert body['data']['country'] == 'New Zealand'

        cid = body['data']['id']
        resp = client.get(f'/customers/{cid}', headers=headers(org))
        assert resp.get_json()['data']['company_name'] == 'Wilson Construction Ltd'


def test_required_fields_and_nz_formats():
    app = setup_app()
    with app.app_context():
        org = make_org('Alpha')
        client = app.test_client()
        resp = client.post('/customers/', json={'firstName': 'No'}, headers=headers(org))
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'ValidationError'

        bad_post = dict(NEW_CUSTOMER, postalCode='10100')
        assert client.post('/customers/', json=bad_post, headers=headers(org)).status_code == 400
        bad_phone = dict(NEW_CUSTOMER, phone='555')
        assert client.post('/customers/', json=bad_phone, headers=headers(org)).status_code == 400
        assert Customer.query.count() == 0


def test_duplicate_email_within_org_conflicts():
    app = setup_app()
    with app.app_context():
        org_a = make_org('Alpha')
        org_b = make_org('Beta')
        client = app.test_client()
        assert client.post('/customers/', json=NEW_CUSTOMER, headers=headers(org_a)).status_code == 201
        resp = client.post('/customers/', json=NEW_CUSTOMER, headers=headers(org_a))
        assert resp.status_code == 409
        # other tenants may hold the same contact
        assert client.post('/customers/', json=NEW_CUSTOMER, headers=headers(org_b)).status_code == 201


def test_customers_are_tenant_scoped():
    app = setup_app()
    with app.app_context():
        org_a = make_org('Alpha')
        org_b = make_org('Beta')
        client = app.test_client()
        cid = client.post('/customers/', json=NEW_CUSTOMER, headers=headers(org_b)).get_json()['data']['id']
        assert client.get(f'/customers/{cid}', headers=headers(org_a)).status_code == 404
        assert client.put(f'/customers/{cid}', json={'city': 'Hamilton'}, headers=headers(org_a)).status_code == 404
        assert client.delete(f'/customers/{cid}', headers=headers(org_a)).status_code == 404
        assert client.get('/customers/', headers=headers(org_a)).get_json()['data'] == []


def test_update_customer():
    app = setup_app()
    with app.app_context():
        org = make_org('Alpha')
        client = app.test_client()
        cid = client.post('/customers/', json=NEW_CUSTOMER, headers=headers(org)).get_json()['data']['id']
        resp = client.put(f'/customers/{cid}', json={'city': 'Hamilton', 'postalCode': '3204'},
                          headers=headers(org))
        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert data['city'] == 'Hamilton'
        assert data['first_name'] == 'Sarah'
        resp = client.put(f'/customers/{cid}', json={'favouriteColour': 'teal'}, headers=headers(org))
        assert resp.status_code == 400


def test_customer_with_quotes_cannot_be_deleted():
    app = setup_app()
    with app.app_context():
        org = make_org('Alpha')
        client = app.test_client()
        cid = client.post('/customers/', json=NEW_CUSTOMER, headers=headers(org)).get_json()['data']['id']
        resp = client.post('/quotes/', json={
            'customerId': cid,
            'title': 'Site office',
            'items': [{'name': 'Portacom hire', 'quantity': 4, 'unitPrice': 320}],
        }, headers=headers(org))
        assert resp.status_code == 201

        resp = client.delete(f'/customers/{cid}', headers=headers(org))
        assert resp.status_code == 409
        assert resp.get_json()['message'] == 'Cannot delete customer with existing quotes'
        assert Customer.query.count() == 1
        assert Quote.query.count() == 1


def test_customer_without_quotes_can_be_deleted():
    app = setup_app()
    with app.app_context():
        org = make_org('Alpha')
        client = app.test_client()
        cid = client.post('/customers/', json=NEW_CUSTOMER, headers=headers(org)).get_json()['data']['id']
        assert client.delete(f'/customers/{cid}', headers=headers(org)).status_code == 200
        assert Customer.query.count() == 0


def test_nz_validators():
    assert valid_nz_phone('+64 21 123 456')
    assert valid_nz_phone('09 123 4567')
    assert not valid_nz_phone('12345')
    assert valid_nz_postcode('6011')
    assert not valid_nz_postcode('601')
