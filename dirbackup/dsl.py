"""
Backup scripts.

A backup script is a Python file evaluated with a small vocabulary in scope:

    backup('/home/user/documents')
    backup('/home/user/music', file_name('*.mp3') | file_name('*.wav'))
    backup('/home/user/images', except_(file_name('*.tmp')))
    to('/external_drive/backups')
    interval(60)

backup/to/interval write straight into a BackupConfig; the finder helpers
build expressions.
"""

import logging
from pathlib import Path
from typing import Any, Dict

from dirbackup.backup.expressions import (
    Expression,
    ExpressionError,
    all_files,
    file_name,
    larger_than,
    bigger,
    writable,
    not_,
    except_,
    and_,
    or_,
)
from dirbackup.backup.runner import BackupConfig, ConfigurationError
from dirbackup.backup.sources import DataSource


logger = logging.getLogger(__name__)


class BackupDSL:
    """Script vocabulary bound to one BackupConfig."""

    def __init__(self, config: BackupConfig):
        self.config = config

    def backup(self, directory, expression: Expression = None) -> DataSource:
        """Back up the files under directory selected by expression (all files by default)."""
        return self.config.register_source(directory, expression)

    def to(self, directory):
        """Write backups below directory."""
        self.config.set_destination(directory)

    def interval(self, minutes: int):
        """Run a backup pass every `minutes` minutes."""
        self.config.set_interval(minutes)

    def namespace(self) -> Dict[str, Any]:
        """Globals a backup script is executed with."""
        return {
            '__builtins__': __builtins__,
            'backup': self.backup,
            'to': self.to,
            'interval': self.interval,
            'all_files': all_files,
            'file_name': file_name,
            'larger_than': larger_than,
            'bigger': bigger,
            'writable': writable,
            'not_': not_,
            'except_': except_,
            'and_': and_,
            'or_': or_,
        }

    def load(self, path) -> BackupConfig:
        """
        Execute a backup script against the bound config.

        Args:
            path: Path to the script

        Returns:
            The updated BackupConfig

        Raises:
            ConfigurationError: If the script cannot be read, does not
                compile, or rejects a setting
        """
        script_path = Path(path).expanduser()

        try:
            source = script_path.read_text(encoding='utf-8')
        except OSError as e:
            raise ConfigurationError(f"Cannot read backup script {script_path}: {e}")

        try:
            code = compile(source, str(script_path), 'exec')
        except SyntaxError as e:
            raise ConfigurationError(f"Invalid backup script {script_path}: {e}")

        try:
            exec(code, self.namespace())
        except (ConfigurationError, ExpressionError) as e:
            raise ConfigurationError(f"Backup script {script_path} rejected: {e}")
        except Exception as e:
            raise ConfigurationError(f"Backup script {script_path} failed: {type(e).__name__}: {e}") from e

        logger.info(
            f"Loaded backup script {script_path} "
            f"({len(self.config.data_sources)} data sources, every {self.config.interval_minutes} minutes)"
        )
        return self.config


def load_script(path, config: BackupConfig = None) -> BackupConfig:
    """
    Load a backup script into a config.

    Args:
        path: Path to the script
        config: Config to update (a fresh default config when omitted)

    Returns:
        The populated BackupConfig
    """
    if config is None:
        config = BackupConfig()
    return BackupDSL(config).load(path)
