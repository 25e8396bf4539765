"""
Data sources for backup passes.

A DataSource pairs a root directory with a finder expression and copies
every selected file into a destination tree, mirroring the file's absolute
path below the destination:

    /home/user/music/a.mp3  ->  {destination}/home/user/music/a.mp3
"""

import os
import shutil
import tempfile
import logging
from pathlib import Path
from typing import List, Optional, Set

from .expressions import Expression, All


logger = logging.getLogger(__name__)


class CopyError(Exception):
    """Raised when a single file cannot be copied into the backup."""
    pass


class CopyFailure:
    """Record of a file that could not be copied during a pass."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason

    def to_dict(self) -> dict:
        return {'path': str(self.path), 'reason': self.reason}

    def __repr__(self):
        return f'CopyFailure({str(self.path)!r}, {self.reason!r})'


class SourceResult:
    """Outcome of backing up one data source."""

    def __init__(self, root: Path):
        self.root = root
        self.matched = 0
        self.copied: List[Path] = []
        self.failures: List[CopyFailure] = []
        self.error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failures

    def to_dict(self) -> dict:
        return {
            'root': str(self.root),
            'matched': self.matched,
            'copied': len(self.copied),
            'failures': [failure.to_dict() for failure in self.failures],
            'error': self.error
        }


def mirror_path(path: Path, destination_root: Path) -> Path:
    """
    Map a source file to its location under a destination root.

    The path is made absolute and its anchor ('/' or a drive) dropped, so the
    whole original path is reproduced under the destination root.

    Args:
        path: Source file path
        destination_root: Root of the backup tree

    Returns:
        Destination file path
    """
    absolute = Path(os.path.abspath(path))
    return Path(destination_root) / absolute.relative_to(absolute.anchor)


class DataSource:
    """
    A root directory bound to the expression that selects files under it.

    Instances are immutable after construction.
    """

    def __init__(self, root, expression: Expression = None):
        """
        Initialize data source.

        Args:
            root: Directory to select files from (made absolute, ~ expanded)
            expression: Finder expression (defaults to All)
        """
        self._root = Path(os.path.abspath(os.path.expanduser(str(root))))
        self._expression = expression if expression is not None else All()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def expression(self) -> Expression:
        return self._expression

    def select(self) -> Set[Path]:
        """Evaluate the expression against the root directory."""
        return self._expression.evaluate(self._root)

    def backup(self, destination_root) -> SourceResult:
        """
        Copy every selected file under destination_root.

        A file that fails to copy is recorded on the result and the remaining
        files are still copied.

        Args:
            destination_root: Directory the mirrored tree is written into

        Returns:
            SourceResult with copied paths and per-file failures
        """
        result = SourceResult(self._root)
        files = sorted(self.select())
        result.matched = len(files)

        logger.info(f"Backing up {len(files)} files from {self._root}")

        for path in files:
            try:
                result.copied.append(self.backup_file(path, destination_root))
            except CopyError as e:
                logger.warning(str(e))
                result.failures.append(CopyFailure(path, str(e)))

        return result

    def backup_file(self, path: Path, destination_root) -> Path:
        """
        Copy one file's content into the backup tree.

        Args:
            path: Source file
            destination_root: Root of the backup tree

        Returns:
            Path of the written copy

        Raises:
            CopyError: If the directory cannot be created or the copy fails
        """
        copy_path = mirror_path(path, destination_root)
        partial_path = None

        # Content is written to a temporary sibling and moved into place, so a
        # failed copy never touches a file already at copy_path
        try:
            copy_path.parent.mkdir(parents=True, exist_ok=True)
            fd, partial_name = tempfile.mkstemp(
                prefix=f'.{copy_path.name}.', suffix='.partial', dir=copy_path.parent
            )
            os.close(fd)
            partial_path = Path(partial_name)
            shutil.copyfile(path, partial_path)
            os.replace(partial_path, copy_path)
        except FileNotFoundError as e:
            self._discard_partial(partial_path)
            raise CopyError(f"File disappeared before it could be copied {path}: {e}")
        except PermissionError as e:
            self._discard_partial(partial_path)
            raise CopyError(f"Permission denied copying {path}: {e}")
        except OSError as e:
            self._discard_partial(partial_path)
            raise CopyError(f"Failed to copy {path}: {e}")

        return copy_path

    @staticmethod
    def _discard_partial(partial_path: Optional[Path]):
        if partial_path is None:
            return
        try:
            if partial_path.is_file():
                partial_path.unlink()
        except OSError as e:
            logger.warning(f"Could not remove partial copy {partial_path}: {e}")

    def to_dict(self) -> dict:
        return {'root': str(self._root), 'selector': self._expression.to_dict()}

    def __repr__(self):
        return f'DataSource({str(self._root)!r}, {self._expression!r})'
