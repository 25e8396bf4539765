"""
Dashboard routes - Overview and scheduler status endpoints.
"""

from flask import Blueprint, jsonify

from dirbackup import get_runner, get_scheduler


bp = Blueprint('dashboard', __name__, url_prefix='/api/dashboard')


@bp.route('/overview', methods=['GET'])
def get_overview():
    """
    Get dashboard overview.

    Returns:
        JSON with overview:
        - destination: Backup destination root
        - interval_minutes: Minutes between passes
        - source_count: Number of registered data sources
        - scheduler_status: 'running' or 'stopped'
        - next_run: Next scheduled pass (ISO 8601) or null
        - last_pass: Summary of the most recent pass or null
    """
    runner = get_runner()
    scheduler = get_scheduler()
    destination, interval, sources = runner.config.snapshot()

    last_pass = runner.last_pass()
    last_pass_info = None
    if last_pass:
        last_pass_info = {
            'name': last_pass.name,
            'status': last_pass.status,
            'completed_at': last_pass.completed_at.isoformat() if last_pass.completed_at else None,
            'files_copied': last_pass.files_copied,
            'failure_count': last_pass.failure_count
        }

    return jsonify({
        'destination': str(destination),
        'interval_minutes': interval,
        'source_count': len(sources),
        'scheduler_status': 'running' if scheduler.is_running() else 'stopped',
        'next_run': scheduler.next_run_time() if scheduler.is_running() else None,
        'last_pass': last_pass_info
    })


@bp.route('/scheduled-jobs', methods=['GET'])
def get_scheduled_jobs_info():
    """
    Get information about currently scheduled jobs.

    Returns:
        JSON array of scheduled jobs with next run times
    """
    return jsonify(get_scheduler().get_scheduled_jobs())


@bp.route('/scheduler-diagnostics', methods=['GET'])
def get_scheduler_diagnostics_endpoint():
    """
    Get detailed scheduler diagnostics.

    Returns:
        JSON with scheduler state, jobs, and pass activity
    """
    return jsonify(get_scheduler().get_diagnostics())
