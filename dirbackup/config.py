import os


class Config:
    """Base configuration"""

    # Backup schedule
    BACKUP_DESTINATION = os.environ.get('BACKUP_DESTINATION') or '/data/backups'
    BACKUP_INTERVAL_MINUTES = os.environ.get('BACKUP_INTERVAL_MINUTES') or 60

    # Optional backup script evaluated at startup (see dirbackup.dsl)
    BACKUP_SCRIPT = os.environ.get('BACKUP_SCRIPT')

    # Number of recent passes kept for the history endpoints
    PASS_HISTORY_LIMIT = int(os.environ.get('PASS_HISTORY_LIMIT') or 50)

    # Logging
    LOG_DIR = os.environ.get('LOG_DIR') or '/data/logs'

    # Scheduler
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() == 'true'
    SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE') or 'UTC'


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    # Use local data directory for development
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    BACKUP_DESTINATION = os.environ.get('BACKUP_DESTINATION') or os.path.join(DATA_DIR, 'backups')
    LOG_DIR = os.path.join(DATA_DIR, 'logs')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


class TestingConfig(Config):
    """Test configuration: no scheduler thread, no log files"""
    TESTING = True
    DEBUG = False
    BACKUP_SCRIPT = None
    BACKUP_INTERVAL_MINUTES = 60
    LOG_DIR = None
    SCHEDULER_ENABLED = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': ProductionConfig
}
