"""
Backup module for dirbackup.

This module handles the core backup functionality including:
- Finder expressions selecting files under a directory
- Text queries for building expressions
- Data sources copying selected files into a backup tree
- The runner executing timestamped backup passes
"""

from .expressions import (
    Expression,
    ExpressionError,
    All,
    NameMatches,
    LargerThan,
    Writable,
    Not,
    Except,
    And,
    Or,
    all_files,
    file_name,
    larger_than,
    bigger,
    writable,
    not_,
    except_,
    and_,
    or_,
    expression_from_dict,
)
from .query import parse_query, load_selector
from .sources import DataSource, CopyError, CopyFailure, SourceResult
from .runner import BackupConfig, BackupRunner, PassResult, ConfigurationError

__all__ = [
    'Expression',
    'ExpressionError',
    'All',
    'NameMatches',
    'LargerThan',
    'Writable',
    'Not',
    'Except',
    'And',
    'Or',
    'all_files',
    'file_name',
    'larger_than',
    'bigger',
    'writable',
    'not_',
    'except_',
    'and_',
    'or_',
    'expression_from_dict',
    'parse_query',
    'load_selector',
    'DataSource',
    'CopyError',
    'CopyFailure',
    'SourceResult',
    'BackupConfig',
    'BackupRunner',
    'PassResult',
    'ConfigurationError'
]
