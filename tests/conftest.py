"""
Shared pytest fixtures for dirbackup tests.

This module provides fixtures for:
- Flask app and test client
- Source trees with known file names and sizes
- Backup configuration and runner
- Mock fixture for APScheduler
"""

from unittest.mock import MagicMock, patch

import pytest

from dirbackup import create_app
from dirbackup.backup.runner import BackupConfig, BackupRunner


@pytest.fixture(scope='function')
def app(tmp_path):
    """
    Create Flask app with test configuration.

    The scheduler thread is never started; backups go under tmp_path.
    """
    app = create_app('testing', overrides={
        'BACKUP_DESTINATION': str(tmp_path / 'backups'),
    })

    yield app


@pytest.fixture(scope='function')
def client(app):
    """Flask test client for making HTTP requests."""
    return app.test_client()


@pytest.fixture
def sample_tree(tmp_path):
    """
    Create a source directory with files of known sizes.

    Creates:
    - a.txt (10 bytes)
    - b.mp3 (2000 bytes)
    - c.mp3 (5 bytes)
    """
    root = tmp_path / 'source'
    root.mkdir()

    (root / 'a.txt').write_bytes(b'x' * 10)
    (root / 'b.mp3').write_bytes(b'x' * 2000)
    (root / 'c.mp3').write_bytes(b'x' * 5)

    return root


@pytest.fixture
def temp_files(tmp_path):
    """
    Create a nested source directory.

    Creates:
    - test_file1.txt
    - test_file2.log
    - nested/test_file3.txt
    - nested/deeper/song.mp3
    - .hidden.txt
    """
    root = tmp_path / 'nested_source'
    root.mkdir()

    (root / 'test_file1.txt').write_text('Test content 1')
    (root / 'test_file2.log').write_text('Test log content')
    (root / '.hidden.txt').write_text('hidden')

    nested_dir = root / 'nested'
    nested_dir.mkdir()
    (nested_dir / 'test_file3.txt').write_text('Nested test content')

    deeper_dir = nested_dir / 'deeper'
    deeper_dir.mkdir()
    (deeper_dir / 'song.mp3').write_bytes(b'\x00' * 300)

    return root


@pytest.fixture
def backup_dir(tmp_path):
    """Destination root for backup passes (not created yet)."""
    return tmp_path / 'backups'


@pytest.fixture
def backup_config(backup_dir):
    """BackupConfig writing to backup_dir with no sources."""
    return BackupConfig(destination=backup_dir, interval_minutes=5)


@pytest.fixture
def runner(backup_config):
    """BackupRunner for backup_config."""
    return BackupRunner(backup_config)


@pytest.fixture(scope='function')
def mock_scheduler():
    """
    Mock APScheduler for testing scheduler functionality.
    """
    with patch('dirbackup.scheduler.BackgroundScheduler') as mock_sched:
        scheduler_instance = MagicMock()
        mock_sched.return_value = scheduler_instance

        # Mock scheduler methods
        scheduler_instance.running = False
        scheduler_instance.state = 0
        scheduler_instance.get_jobs.return_value = []

        yield scheduler_instance
