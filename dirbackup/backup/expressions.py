"""
Finder expressions for selecting files to back up.

Terminals:
- All: every regular file under a directory
- NameMatches: base name matches a shell glob
- LargerThan: size strictly above a threshold
- Writable: writable by the current process

Combinators:
- Not / Except: everything under the directory minus the inner selection
- And: intersection of two selections
- Or: union of two selections

Every expression evaluates to a set of paths, so results compose with plain
set algebra and traversal order never matters.
"""

import os
import stat
import logging
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Dict, Iterator, Set, Tuple


logger = logging.getLogger(__name__)


class ExpressionError(ValueError):
    """Raised when an expression cannot be built from the given input."""
    pass


def _log_walk_error(error: OSError):
    logger.debug(f"Skipping unreadable path during traversal: {error}")


def iter_regular_files(root) -> Iterator[Tuple[Path, os.stat_result]]:
    """
    Walk a directory and yield every regular file with its stat result.

    Symlinks are never followed and never yielded. A root that does not exist,
    a subdirectory that cannot be listed, or an entry that disappears while
    being inspected is silently left out.

    Args:
        root: Directory to walk

    Yields:
        (path, stat_result) tuples
    """
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        for name in filenames:
            path = Path(dirpath) / name
            try:
                st = path.lstat()
            except OSError as e:
                _log_walk_error(e)
                continue
            if stat.S_ISREG(st.st_mode):
                yield path, st


class Expression:
    """
    Base class for all finder expressions.

    Expressions are immutable values. Two expressions with the same structure
    compare equal and hash alike.
    """

    def evaluate(self, root) -> Set[Path]:
        """
        Select files under a directory.

        Args:
            root: Directory to search

        Returns:
            Set of matching file paths (empty if root does not exist)
        """
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the expression tree to plain JSON-compatible data."""
        raise NotImplementedError

    def _key(self) -> tuple:
        raise NotImplementedError

    def __and__(self, other: 'Expression') -> 'And':
        return And(self, other)

    def __or__(self, other: 'Expression') -> 'Or':
        return Or(self, other)

    def __invert__(self) -> 'Not':
        return Not(self)

    def __eq__(self, other):
        if not isinstance(other, Expression):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())


class FileFilter(Expression):
    """Terminal expression that tests each regular file on its own."""

    def matches(self, path: Path, st: os.stat_result) -> bool:
        raise NotImplementedError

    def evaluate(self, root) -> Set[Path]:
        return {path for path, st in iter_regular_files(root) if self.matches(path, st)}


class All(FileFilter):
    """Matches every regular file."""

    def matches(self, path: Path, st: os.stat_result) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'all'}

    def _key(self) -> tuple:
        return ('all',)

    def __repr__(self):
        return 'All()'


class NameMatches(FileFilter):
    """
    Matches files whose base name satisfies a shell glob pattern.

    Matching is case-sensitive. As in the shell, a leading dot in the name
    has to be matched explicitly by the pattern.
    """

    def __init__(self, pattern: str):
        """
        Args:
            pattern: Glob pattern such as '*.mp3'

        Raises:
            ExpressionError: If pattern is empty or not a string
        """
        if not isinstance(pattern, str) or not pattern:
            raise ExpressionError(f"Name pattern must be a non-empty string: {pattern!r}")
        self._pattern = pattern

    @property
    def pattern(self) -> str:
        return self._pattern

    def matches(self, path: Path, st: os.stat_result) -> bool:
        name = path.name
        if name.startswith('.') and not self._pattern.startswith('.'):
            return False
        return fnmatchcase(name, self._pattern)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'name', 'pattern': self._pattern}

    def _key(self) -> tuple:
        return ('name', self._pattern)

    def __repr__(self):
        return f'NameMatches({self._pattern!r})'


class LargerThan(FileFilter):
    """Matches files strictly larger than a byte threshold."""

    def __init__(self, threshold: int):
        """
        Args:
            threshold: Size in bytes; a file of exactly this size is excluded

        Raises:
            ExpressionError: If threshold is not a non-negative integer
        """
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
            raise ExpressionError(f"Size threshold must be a non-negative integer: {threshold!r}")
        self._threshold = threshold

    @property
    def threshold(self) -> int:
        return self._threshold

    def matches(self, path: Path, st: os.stat_result) -> bool:
        return st.st_size > self._threshold

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'larger_than', 'bytes': self._threshold}

    def _key(self) -> tuple:
        return ('larger_than', self._threshold)

    def __repr__(self):
        return f'LargerThan({self._threshold})'


class Writable(FileFilter):
    """Matches files the current process may write to (checked on every evaluation)."""

    def matches(self, path: Path, st: os.stat_result) -> bool:
        return os.access(path, os.W_OK)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'writable'}

    def _key(self) -> tuple:
        return ('writable',)

    def __repr__(self):
        return 'Writable()'


class Not(Expression):
    """
    Complement of an expression relative to All.

    The full listing is taken fresh on every call, so nested negations each
    walk the directory again.
    """

    def __init__(self, expression: Expression):
        self._expression = _require_expression(expression)

    @property
    def expression(self) -> Expression:
        return self._expression

    def evaluate(self, root) -> Set[Path]:
        return All().evaluate(root) - self._expression.evaluate(root)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'not', 'expression': self._expression.to_dict()}

    def _key(self) -> tuple:
        return ('not', self._expression._key())

    def __repr__(self):
        return f'Not({self._expression!r})'


# The backup DSL calls the same combinator "except"
Except = Not


class And(Expression):
    """Intersection of two selections."""

    def __init__(self, left: Expression, right: Expression):
        self._left = _require_expression(left)
        self._right = _require_expression(right)

    @property
    def left(self) -> Expression:
        return self._left

    @property
    def right(self) -> Expression:
        return self._right

    def evaluate(self, root) -> Set[Path]:
        return self._left.evaluate(root) & self._right.evaluate(root)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'and', 'left': self._left.to_dict(), 'right': self._right.to_dict()}

    def _key(self) -> tuple:
        return ('and', self._left._key(), self._right._key())

    def __repr__(self):
        return f'And({self._left!r}, {self._right!r})'


class Or(Expression):
    """Union of two selections; a file matching both sides appears once."""

    def __init__(self, left: Expression, right: Expression):
        self._left = _require_expression(left)
        self._right = _require_expression(right)

    @property
    def left(self) -> Expression:
        return self._left

    @property
    def right(self) -> Expression:
        return self._right

    def evaluate(self, root) -> Set[Path]:
        return self._left.evaluate(root) | self._right.evaluate(root)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'or', 'left': self._left.to_dict(), 'right': self._right.to_dict()}

    def _key(self) -> tuple:
        return ('or', self._left._key(), self._right._key())

    def __repr__(self):
        return f'Or({self._left!r}, {self._right!r})'


def _require_expression(value) -> Expression:
    if not isinstance(value, Expression):
        raise ExpressionError(f"Expected an expression, got {type(value).__name__}")
    return value


# Factory functions

def all_files() -> All:
    return All()


def file_name(pattern: str) -> NameMatches:
    return NameMatches(pattern)


def larger_than(threshold: int) -> LargerThan:
    return LargerThan(threshold)


bigger = larger_than


def writable() -> Writable:
    return Writable()


def not_(expression: Expression) -> Not:
    return Not(expression)


def except_(expression: Expression) -> Not:
    return Except(expression)


def and_(left: Expression, right: Expression) -> And:
    return And(left, right)


def or_(left: Expression, right: Expression) -> Or:
    return Or(left, right)


def expression_from_dict(data: Dict[str, Any]) -> Expression:
    """
    Build an expression tree from its dict form.

    Args:
        data: Dict with a 'type' key ('all', 'name', 'larger_than', 'writable',
              'not', 'except', 'and', 'or') and the fields that type needs

    Returns:
        Expression instance

    Raises:
        ExpressionError: If the type is unknown or a field is missing
    """
    if not isinstance(data, dict):
        raise ExpressionError(f"Expression must be an object, got {type(data).__name__}")

    expr_type = data.get('type')

    try:
        if expr_type == 'all':
            return All()
        elif expr_type == 'name':
            return NameMatches(data['pattern'])
        elif expr_type == 'larger_than':
            return LargerThan(data['bytes'])
        elif expr_type == 'writable':
            return Writable()
        elif expr_type in ('not', 'except'):
            return Not(expression_from_dict(data['expression']))
        elif expr_type == 'and':
            return And(expression_from_dict(data['left']), expression_from_dict(data['right']))
        elif expr_type == 'or':
            return Or(expression_from_dict(data['left']), expression_from_dict(data['right']))
    except KeyError as e:
        raise ExpressionError(f"Expression of type '{expr_type}' is missing field {e}")

    raise ExpressionError(f"Unknown expression type: {expr_type!r}")
