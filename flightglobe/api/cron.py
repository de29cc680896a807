"""
Scheduled job endpoint.

- GET /api/cron/flights - Poll every region, store positions, sweep history

Meant for an external scheduler. When CRON_SECRET is configured the
request must carry "Authorization: Bearer <CRON_SECRET>".
"""

import hmac
import logging

from flask import Blueprint, current_app, jsonify, request

from flightglobe.models import Source
from flightglobe.services import get_services

logger = logging.getLogger(__name__)

cron_bp = Blueprint('cron', __name__, url_prefix='/api/cron')


def _authorized() -> bool:
    secret = current_app.config.get('CRON_SECRET')
    if not secret:
        return True
    header = request.headers.get('Authorization', '')
    return hmac.compare_digest(header, f'Bearer {secret}')


@cron_bp.route('/flights', methods=['GET', 'POST'])
def run_flights_job():
    """Run one poll cycle and return its summary."""
    if not _authorized():
        return jsonify({'error': 'Unauthorized'}), 401

    summary = get_services().pipeline.run_cycle(source=Source.CRON)
    return jsonify(summary)
