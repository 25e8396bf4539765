"""
Settings routes - backup destination and interval.
"""

import logging
from flask import Blueprint, jsonify, request

from dirbackup import get_runner, get_scheduler


bp = Blueprint('settings', __name__, url_prefix='/api/settings')
logger = logging.getLogger(__name__)


@bp.route('/', methods=['GET'])
def get_settings():
    """
    Get the current backup settings.

    Returns:
        JSON with destination, interval_minutes and data_sources
    """
    return jsonify(get_runner().config.to_dict())


@bp.route('/', methods=['PUT'])
def update_settings():
    """
    Update backup settings.

    Request body (all fields optional):
        - destination: Root directory for timestamped passes
        - interval_minutes: Minutes between passes (positive integer)

    Returns:
        JSON with the updated settings
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Request body must be a JSON object'}), 400

    config = get_runner().config

    # Validate everything before applying anything
    if 'interval_minutes' in data:
        minutes = data['interval_minutes']
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            return jsonify({'error': f'Interval must be a positive number of minutes: {minutes!r}'}), 400

    if 'destination' in data:
        config.set_destination(data['destination'])

    if 'interval_minutes' in data:
        config.set_interval(data['interval_minutes'])

        scheduler = get_scheduler()
        if scheduler.is_running():
            scheduler.sync()

    logger.info(f"Settings updated: {sorted(data.keys())}")

    return jsonify({
        'settings': config.to_dict(),
        'message': 'Settings updated successfully'
    })
