# quotehub/quotes/routes.py

from flask import Blueprint, current_app, g, jsonify, request

from quotehub import db
from quotehub.auth import require_caller
from quotehub.errors import ValidationError
from quotehub.quotes.service import QuoteService
from quotehub.quotes.utils import snake_keys

bp = Blueprint('quotes', __name__)
bp.before_request(require_caller)


def _service() -> QuoteService:
    return QuoteService(db.session, g.caller, current_app.config)


def _payload() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return snake_keys(data)


@bp.route('/', methods=['GET'])
def list_quotes():
    quotes = _service().list_quotes(status=request.args.get('status'))
    return jsonify(success=True, data=[q.to_dict(include_items=False) for q in quotes])


@bp.route('/', methods=['POST'])
def create_quote():
    data = _payload()
    quote = _service().create_quote(
        customer_id = data.pop('customer_id', None),
        title       = data.pop('title', None),
        items       = data.pop('items', None),
        text_items  = data.pop('text_items', None),
        **data
    )
    return jsonify(success=True, message='Quote created successfully',
                   data=quote.to_dict()), 201


@bp.route('/<int:quote_id>', methods=['GET'])
def get_quote(quote_id):
    quote = _service().get_quote(quote_id)
    return jsonify(success=True, data=quote.to_dict())


@bp.route('/<int:quote_id>', methods=['PUT'])
def update_quote(quote_id):
    quote = _service().update_quote(quote_id, _payload())
    return jsonify(success=True, message='Quote updated successfully', data=quote.to_dict())


@bp.route('/<int:quote_id>', methods=['DELETE'])
def delete_quote(quote_id):
    _service().delete_quote(quote_id)
    return jsonify(success=True, message='Quote deleted successfully')


@bp.route('/<int:quote_id>/send', methods=['POST'])
def send_quote(quote_id):
    quote = _service().send_quote(quote_id)
    return jsonify(success=True, message='Quote sent', data=quote.to_dict())


@bp.route('/<int:quote_id>/items', methods=['POST'])
def add_item(quote_id):
    quote = _service().add_item(quote_id, _payload())
    return jsonify(success=True, data=quote.to_dict()), 201


@bp.route('/<int:quote_id>/items/<int:item_id>', methods=['PUT'])
def update_item(quote_id, item_id):
    quote = _service().update_item(quote_id, item_id, _payload())
    return jsonify(success=True, data=quote.to_dict())


@bp.route('/<int:quote_id>/items/<int:item_id>', methods=['DELETE'])
def remove_item(quote_id, item_id):
    quote = _service().remove_item(quote_id, item_id)
    return jsonify(success=True, data=quote.to_dict())
