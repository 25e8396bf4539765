"""
Backup history routes - view passes and trigger one now.
"""

from flask import Blueprint, jsonify, request

from dirbackup import get_runner, get_scheduler


bp = Blueprint('history', __name__, url_prefix='/api/history')

VALID_STATUSES = ['running', 'success', 'partial', 'failed']


@bp.route('/', methods=['GET'])
def list_history():
    """
    Get recent backup passes, newest first.

    Query params:
        - status: Filter by status (running/success/partial/failed)
        - limit: Max number of records (default: 50, max: 200)

    Returns:
        JSON with pass records and total count
    """
    status_filter = request.args.get('status')
    limit = request.args.get('limit', 50, type=int)

    # Enforce limits
    if limit > 200:
        limit = 200
    if limit < 1:
        limit = 1

    if status_filter and status_filter not in VALID_STATUSES:
        return jsonify({'error': 'Invalid status filter'}), 400

    passes = get_runner().history()
    if status_filter:
        passes = [result for result in passes if result.status == status_filter]

    return jsonify({
        'passes': [result.to_dict() for result in passes[:limit]],
        'total': len(passes)
    })


@bp.route('/latest', methods=['GET'])
def latest_pass():
    """
    Get the most recent backup pass.

    Returns:
        JSON pass record, or 404 if no pass has run yet
    """
    result = get_runner().last_pass()
    if result is None:
        return jsonify({'error': 'No backup pass has run yet'}), 404
    return jsonify(result.to_dict())


@bp.route('/run', methods=['POST'])
def run_now():
    """
    Run a backup pass now.

    With the scheduler running the pass is queued as a one-off job and the
    request returns immediately (202); otherwise it runs inside the request.

    Returns:
        JSON with the queued job ID or the finished pass record
    """
    scheduler = get_scheduler()

    if scheduler.is_running():
        job_id = scheduler.trigger_now()
        return jsonify({
            'job_id': job_id,
            'message': 'Backup pass queued'
        }), 202

    result = get_runner().run_one_pass()
    return jsonify(result.to_dict())
