import os
import logging
from logging.handlers import RotatingFileHandler
from flask import Flask, current_app, jsonify

from dirbackup.backup.expressions import ExpressionError
from dirbackup.backup.runner import BackupConfig, BackupRunner, ConfigurationError


def configure_logging(app):
    """Configure application logging"""

    # Set log level based on environment
    log_level = logging.DEBUG if app.config.get('DEBUG', False) else logging.INFO

    handlers = []

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    handlers.append(console_handler)

    # File handler
    log_dir = app.config.get('LOG_DIR')
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'dirbackup.log'),
            maxBytes=10485760,  # 10MB
            backupCount=10
        )
        file_handler.setLevel(log_level)
        file_formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    # app.logger is the 'dirbackup' logger, parent of every module logger.
    # Handlers from a previous create_app() in this process are replaced.
    for handler in list(app.logger.handlers):
        app.logger.removeHandler(handler)
        handler.close()

    app.logger.setLevel(log_level)
    for handler in handlers:
        app.logger.addHandler(handler)

    app.logger.info(f"Logging configured (level: {logging.getLevelName(log_level)})")


def get_runner() -> BackupRunner:
    """BackupRunner of the current app."""
    return current_app.extensions['backup_runner']


def get_scheduler():
    """BackupScheduler of the current app."""
    return current_app.extensions['backup_scheduler']


def create_app(config_name=None, overrides=None):
    """Flask application factory"""

    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'production')

    from dirbackup.config import config
    app.config.from_object(config[config_name])

    if overrides:
        app.config.update(overrides)

    # Configure logging
    configure_logging(app)

    # Build the backup schedule: defaults from config, then the optional script
    backup_config = BackupConfig.from_mapping(app.config)

    if app.config.get('BACKUP_SCRIPT'):
        from dirbackup.dsl import load_script
        load_script(app.config['BACKUP_SCRIPT'], backup_config)

    from dirbackup.scheduler import BackupScheduler

    runner = BackupRunner(backup_config, history_limit=app.config['PASS_HISTORY_LIMIT'])
    scheduler = BackupScheduler(runner, app.config['SCHEDULER_TIMEZONE'])

    app.extensions['backup_runner'] = runner
    app.extensions['backup_scheduler'] = scheduler

    # Register blueprints
    from dirbackup.routes import dashboard_routes, sources_routes, settings_routes, history_routes
    app.register_blueprint(dashboard_routes.bp)
    app.register_blueprint(sources_routes.bp)
    app.register_blueprint(settings_routes.bp)
    app.register_blueprint(history_routes.bp)

    @app.errorhandler(ConfigurationError)
    @app.errorhandler(ExpressionError)
    def handle_invalid_setting(error):
        return jsonify({'error': str(error)}), 400

    # Health check endpoint
    @app.route('/health')
    def health():
        return {'status': 'healthy'}, 200

    # Start the scheduler (in development only in the reloader child process)
    is_reloader_child = os.environ.get('WERKZEUG_RUN_MAIN') == 'true'
    is_development = app.config.get('DEBUG', False)

    should_start_scheduler = app.config.get('SCHEDULER_ENABLED', True)
    if should_start_scheduler and is_development:
        should_start_scheduler = is_reloader_child
        app.logger.info(f"Development mode: is_reloader_child={is_reloader_child}")

    if should_start_scheduler:
        import atexit

        scheduler.start()
        atexit.register(scheduler.stop)
        app.logger.info("Scheduler initialized and started successfully")
    else:
        app.logger.info("Scheduler not started in this process")

    return app
