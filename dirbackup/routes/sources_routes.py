"""
Data source routes - register and list the directories being backed up.
"""

import logging
from flask import Blueprint, jsonify, request

from dirbackup import get_runner
from dirbackup.backup.query import load_selector


bp = Blueprint('sources', __name__, url_prefix='/api/sources')
logger = logging.getLogger(__name__)


@bp.route('/', methods=['GET'])
def list_sources():
    """
    Get registered data sources in pass order.

    Returns:
        JSON array of {root, selector}
    """
    sources = get_runner().config.data_sources
    return jsonify([source.to_dict() for source in sources])


@bp.route('/', methods=['POST'])
def register_source():
    """
    Register a new data source.

    Request body:
        - directory: Directory to back up (required)
        - selector: Expression object or text query (optional, default: all files)

    Returns:
        JSON with the registered source
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data.get('directory'):
        return jsonify({'error': 'Source directory is required'}), 400

    # ExpressionError and ConfigurationError are turned into 400 by the app
    expression = load_selector(data.get('selector'))
    source = get_runner().config.register_source(data['directory'], expression)

    return jsonify({
        'source': source.to_dict(),
        'position': len(get_runner().config.data_sources) - 1,
        'message': 'Data source registered successfully'
    }), 201
