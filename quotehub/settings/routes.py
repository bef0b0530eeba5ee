# quotehub/settings/routes.py

from flask import Blueprint, g, jsonify, request

from quotehub import db
from quotehub.auth import require_caller
from quotehub.errors import ValidationError
from quotehub.settings.service import SettingsService

bp = Blueprint('settings', __name__)
bp.before_request(require_caller)


@bp.route('/', methods=['GET'])
def get_settings():
    org = SettingsService(db.session, g.caller).get_settings()
    return jsonify(success=True, data=org.to_dict())


@bp.route('/', methods=['PUT', 'POST'])
def update_settings():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    org = SettingsService(db.session, g.caller).update_settings(data)
    return jsonify(success=True, message='Settings updated successfully', data=org.to_dict())
