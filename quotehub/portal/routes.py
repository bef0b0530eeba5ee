# quotehub/portal/routes.py

from flask import Blueprint, jsonify, request

from quotehub import db
from quotehub.portal.service import PortalService

bp = Blueprint('portal', __name__)


def _public(quote):
    """What the customer gets to see: no internal notes or ids."""
    data = quote.to_dict()
    for key in ('notes', 'created_by', 'organization_id', 'customer_id'):
        data.pop(key, None)
    return data


@bp.route('/quotes/<token>', methods=['GET'])
def view_quote(token):
    quote = PortalService(db.session).view(
        token,
        viewer_ip  = request.remote_addr,
        user_agent = request.headers.get('User-Agent'),
    )
    return jsonify(success=True, data=_public(quote))


@bp.route('/quotes/<token>/accept', methods=['POST'])
def accept_quote(token):
    quote = PortalService(db.session).accept(token)
    return jsonify(success=True, message='Quote accepted', data=_public(quote))


@bp.route('/quotes/<token>/reject', methods=['POST'])
def reject_quote(token):
    quote = PortalService(db.session).reject(token)
    return jsonify(success=True, message='Quote rejected', data=_public(quote))
