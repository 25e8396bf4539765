"""
Backup runner - configuration and pass execution.

A pass:
1. Pick a timestamp name for this pass under the destination root
2. Stage the pass in a hidden .<name>.partial directory
3. Back up every data source in registration order
4. Rename the staging directory to <name>
5. Record the PassResult in the runner history

Passes never overlap. The run() loop waits on a threading.Event between
passes so it can be stopped without interrupting a copy.
"""

import os
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from .expressions import Expression
from .sources import DataSource, SourceResult


logger = logging.getLogger(__name__)

DEFAULT_DESTINATION = '/backup'
DEFAULT_INTERVAL_MINUTES = 60
DEFAULT_HISTORY_LIMIT = 50

TIMESTAMP_FORMAT = '%Y%m%d_%H%M%S'


class ConfigurationError(ValueError):
    """Raised when a backup setting is rejected."""
    pass


def _is_within(path: Path, parent: Path) -> bool:
    try:
        return os.path.commonpath([str(path), str(parent)]) == str(parent)
    except ValueError:
        # Different drives
        return False


class BackupConfig:
    """
    Destination, interval and data sources for one backup schedule.

    All mutators validate eagerly and raise ConfigurationError instead of
    coercing bad values. Readers take a snapshot() so a running pass is not
    affected by concurrent registration.
    """

    def __init__(self, destination=DEFAULT_DESTINATION, interval_minutes: int = DEFAULT_INTERVAL_MINUTES):
        self._lock = threading.RLock()
        self._data_sources: List[DataSource] = []
        self._destination = None
        self._interval_minutes = None
        self.set_destination(destination)
        self.set_interval(interval_minutes)

    @classmethod
    def from_mapping(cls, mapping) -> 'BackupConfig':
        """
        Build a config from Flask config values (strings from the environment allowed).

        Args:
            mapping: Object with BACKUP_DESTINATION and BACKUP_INTERVAL_MINUTES

        Raises:
            ConfigurationError: If a value is invalid
        """
        interval = mapping.get('BACKUP_INTERVAL_MINUTES', DEFAULT_INTERVAL_MINUTES)
        if isinstance(interval, str):
            if not interval.strip().isdigit():
                raise ConfigurationError(f"BACKUP_INTERVAL_MINUTES must be a positive integer: {interval!r}")
            interval = int(interval)

        return cls(
            destination=mapping.get('BACKUP_DESTINATION', DEFAULT_DESTINATION),
            interval_minutes=interval
        )

    @property
    def destination(self) -> Path:
        return self._destination

    @property
    def interval_minutes(self) -> int:
        return self._interval_minutes

    @property
    def data_sources(self) -> Tuple[DataSource, ...]:
        with self._lock:
            return tuple(self._data_sources)

    def snapshot(self) -> Tuple[Path, int, Tuple[DataSource, ...]]:
        """Return (destination, interval_minutes, data_sources) read together."""
        with self._lock:
            return self._destination, self._interval_minutes, tuple(self._data_sources)

    def register_source(self, root, expression: Expression = None) -> DataSource:
        """
        Add a data source to the end of the pass order.

        Args:
            root: Directory to back up
            expression: Finder expression (defaults to All)

        Returns:
            The registered DataSource

        Raises:
            ConfigurationError: If root is empty, expression is not an
                Expression, or root and destination overlap
        """
        if root is None or not str(root).strip():
            raise ConfigurationError("Source directory is required")

        if expression is not None and not isinstance(expression, Expression):
            raise ConfigurationError(f"Selector must be an expression, got {type(expression).__name__}")

        source = DataSource(root, expression)

        with self._lock:
            self._check_overlap(source.root, self._destination)
            self._data_sources.append(source)

        logger.info(f"Registered data source {source.root} ({source.expression!r})")
        return source

    def set_destination(self, destination):
        """
        Set the root directory that timestamped passes are written into.

        Raises:
            ConfigurationError: If destination is empty, is an existing file,
                or overlaps a registered source root
        """
        if destination is None or not str(destination).strip():
            raise ConfigurationError("Backup destination is required")

        path = Path(os.path.abspath(os.path.expanduser(str(destination))))

        if path.exists() and not path.is_dir():
            raise ConfigurationError(f"Backup destination is not a directory: {path}")

        with self._lock:
            for source in self._data_sources:
                self._check_overlap(source.root, path)
            self._destination = path

        logger.info(f"Backup destination set to {path}")

    def set_interval(self, minutes: int):
        """
        Set the number of minutes between passes.

        Raises:
            ConfigurationError: If minutes is not a positive integer
        """
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise ConfigurationError(f"Interval must be a positive number of minutes: {minutes!r}")

        with self._lock:
            self._interval_minutes = minutes

        logger.info(f"Backup interval set to {minutes} minutes")

    @staticmethod
    def _check_overlap(root: Path, destination: Optional[Path]):
        if destination is None:
            return
        if _is_within(destination, root) or _is_within(root, destination):
            raise ConfigurationError(
                f"Backup destination {destination} and source {root} must not contain each other"
            )

    def to_dict(self) -> dict:
        destination, interval, sources = self.snapshot()
        return {
            'destination': str(destination),
            'interval_minutes': interval,
            'data_sources': [source.to_dict() for source in sources]
        }


class PassResult:
    """Outcome of one backup pass."""

    def __init__(self, name: str, destination: Path):
        self.name = name
        self.destination = destination
        self.status = 'running'
        self.started_at = datetime.now(timezone.utc)
        self.completed_at: Optional[datetime] = None
        self.sources: List[SourceResult] = []
        self.error_message: Optional[str] = None
        self.logs: List[str] = []

    @property
    def files_copied(self) -> int:
        return sum(len(source.copied) for source in self.sources)

    @property
    def failure_count(self) -> int:
        return sum(len(source.failures) + (1 if source.error else 0) for source in self.sources)

    def log(self, message: str):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
        """
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        self.logs.append(f"[{timestamp}] {message}")
        logger.info(message)

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'destination': str(self.destination),
            'status': self.status,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'files_copied': self.files_copied,
            'failure_count': self.failure_count,
            'sources': [source.to_dict() for source in self.sources],
            'error_message': self.error_message,
            'logs': '\n'.join(self.logs)
        }


class BackupRunner:
    """
    Executes backup passes for a BackupConfig.

    One runner is created per process and shared by the scheduler and the
    HTTP routes.
    """

    def __init__(self, config: BackupConfig, history_limit: int = DEFAULT_HISTORY_LIMIT):
        """
        Initialize backup runner.

        Args:
            config: Backup configuration to execute
            history_limit: Number of recent pass results to keep
        """
        self.config = config
        self._history = deque(maxlen=history_limit)
        self._pass_lock = threading.Lock()
        self._stop_event = threading.Event()

    def history(self) -> List[PassResult]:
        """Recent pass results, newest first."""
        return list(reversed(self._history))

    def last_pass(self) -> Optional[PassResult]:
        return self._history[-1] if self._history else None

    @property
    def pass_in_progress(self) -> bool:
        return self._pass_lock.locked()

    def run_one_pass(self) -> PassResult:
        """
        Run a single backup pass into a fresh timestamped directory.

        Returns:
            PassResult describing what was copied and what failed
        """
        with self._pass_lock:
            destination, _, sources = self.config.snapshot()
            name = self._pass_name(destination)
            final_dir = destination / name
            staging_dir = destination / f'.{name}.partial'

            result = PassResult(name, final_dir)
            self._history.append(result)
            result.log(f"Starting backup pass {name} ({len(sources)} data sources)")

            try:
                staging_dir.mkdir(parents=True)
            except OSError as e:
                return self._finish(result, 'failed', f"Could not create pass directory {staging_dir}: {e}")

            for source in sources:
                result.sources.append(self._backup_source(source, staging_dir, result))

            try:
                os.rename(staging_dir, final_dir)
            except OSError as e:
                return self._finish(result, 'failed', f"Could not publish pass directory {final_dir}: {e}")

            status = 'partial' if result.failure_count else 'success'
            return self._finish(result, status)

    def _backup_source(self, source: DataSource, staging_dir: Path, result: PassResult) -> SourceResult:
        result.log(f"Backing up {source.root}")
        try:
            source_result = source.backup(staging_dir)
        except Exception as e:
            logger.exception(f"Data source {source.root} failed")
            source_result = SourceResult(source.root)
            source_result.error = str(e)
            result.log(f"Data source {source.root} failed: {e}")
            return source_result

        result.log(
            f"Copied {len(source_result.copied)} of {source_result.matched} files from {source.root}"
        )
        for failure in source_result.failures:
            result.log(f"Failed to copy {failure.path}: {failure.reason}")
        return source_result

    def _finish(self, result: PassResult, status: str, error_message: str = None) -> PassResult:
        result.status = status
        result.error_message = error_message
        result.completed_at = datetime.now(timezone.utc)
        if error_message:
            result.log(f"Backup pass failed: {error_message}")
        else:
            result.log(
                f"Backup pass {result.name} finished with status {status} "
                f"({result.files_copied} files copied, {result.failure_count} failures)"
            )
        return result

    @staticmethod
    def _pass_name(destination: Path) -> str:
        """UTC timestamp name for a pass, suffixed when the second is already taken."""
        base = datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)
        name = base
        counter = 1
        while (destination / name).exists() or (destination / f'.{name}.partial').exists():
            name = f'{base}_{counter}'
            counter += 1
        return name

    def run(self, stop_event: threading.Event = None):
        """
        Run passes forever, waiting interval_minutes between them.

        Args:
            stop_event: Event that ends the loop once set; defaults to the
                runner's own event (see stop()), which is cleared again when
                the loop ends so the runner can be restarted
        """
        own_event = stop_event is None
        if own_event:
            stop_event = self._stop_event
        logger.info("Backup loop started")

        try:
            while not stop_event.is_set():
                self.run_one_pass()
                interval_seconds = self.config.interval_minutes * 60
                if stop_event.wait(interval_seconds):
                    break
        finally:
            if own_event:
                stop_event.clear()

        logger.info("Backup loop stopped")

    def stop(self):
        """Ask run() to return after the current pass."""
        self._stop_event.set()
