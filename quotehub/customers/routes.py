# quotehub/customers/routes.py

from flask import Blueprint, g, jsonify, request

from quotehub import db
from quotehub.auth import require_caller
from quotehub.customers.service import CustomerService
from quotehub.errors import ValidationError

bp = Blueprint('customers', __name__)
bp.before_request(require_caller)


def _service() -> CustomerService:
    return CustomerService(db.session, g.caller)


def _payload() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


@bp.route('/', methods=['GET'])
def list_customers():
    customers = _service().list_customers()
    return jsonify(success=True, data=[c.to_dict() for c in customers])


@bp.route('/', methods=['POST'])
def create_customer():
    customer = _service().create_customer(_payload())
    return jsonify(success=True, message='Customer created successfully',
                   data=customer.to_dict()), 201


@bp.route('/<int:customer_id>', methods=['GET'])
def get_customer(customer_id):
    return jsonify(success=True, data=_service().get_customer(customer_id).to_dict())


@bp.route('/<int:customer_id>', methods=['PUT'])
def update_customer(customer_id):
    customer = _service().update_customer(customer_id, _payload())
    return jsonify(success=True, message='Customer updated successfully',
                   data=customer.to_dict())


@bp.route('/<int:customer_id>', methods=['DELETE'])
def delete_customer(customer_id):
    _service().delete_customer(customer_id)
    return jsonify(success=True, message='Customer deleted successfully')
