"""
Settings API endpoints.

Provides endpoints for:
- GET /api/settings - Current runtime settings
- PUT /api/settings - Update one or more settings
    Body: {"refresh_interval": 60, "retention_days": 7, "client_tracking": false}
"""

import logging

from flask import Blueprint, jsonify, request

from flightglobe.history.settings import validate_setting
from flightglobe.services import get_services

logger = logging.getLogger(__name__)

settings_bp = Blueprint('settings', __name__, url_prefix='/api/settings')


@settings_bp.route('', methods=['GET'])
def get_settings():
    services = get_services()
    return jsonify({
        'settings': services.settings.get().to_dict(),
        'persistent': services.ledger is not None,
    })


@settings_bp.route('', methods=['PUT', 'POST'])
def update_settings():
    """
    Update settings.

    Every key is validated before anything is written, so an invalid
    value leaves all settings untouched. Saving is per key: if the ledger
    rejects one key, keys already saved stay saved and the response
    lists the ones that failed.
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({'error': 'JSON body required'}), 400

    try:
        for key, value in data.items():
            validate_setting(key, value)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    services = get_services()
    if services.ledger is None:
        return jsonify({'error': 'Settings storage not configured'}), 503

    failed = [key for key, value in data.items() if not services.settings.update(key, value)]
    if failed:
        return jsonify({
            'error': 'Failed to save settings',
            'failed': failed,
        }), 500

    return jsonify({
        'success': True,
        'settings': services.settings.get(force=True).to_dict(),
    })
