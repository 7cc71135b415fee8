"""
Database Module for Tipline
~~~~~~~~~~~~~~~~~~~~~~~~~~~

Query wrapper with lazy connection, result caching, transactions and a
debug console.

:copyright: (c) 2024-present tipline
"""

__title__ = 'tipline database'
__author__ = 'tipline'
__license__ = 'None'
__version__ = '0.2.0'
__copyright__ = 'Copyright 2024-present tipline'

from .database import Database
from .base import (
    DatabaseError, ConfigurationError, ConnectionFailed, QueryError,
    DatabaseHalted, DatabaseConnection, TransactionStatus
)
from .resources import RowResource, CursorResource, CachedResource
from .migrations import MigrationManager

__all__ = [
    'Database',
    'DatabaseError',
    'ConfigurationError',
    'ConnectionFailed',
    'QueryError',
    'DatabaseHalted',
    'DatabaseConnection',
    'TransactionStatus',
    'RowResource',
    'CursorResource',
    'CachedResource',
    'MigrationManager',
]
