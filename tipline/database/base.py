"""
Database Module for Tipline - Base Components
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Exceptions, transaction states and the lazily opened connection.

:copyright: (c) 2024-present tipline
"""

from enum import IntEnum
from typing import Any, Dict, Optional
from tipline.logging_config import DatabaseLogger


class DatabaseError(Exception):
    """Custom exception for database operations."""
    pass


class ConfigurationError(DatabaseError):
    """The driver is missing or the wrapper was configured wrongly."""
    pass


class ConnectionFailed(DatabaseError):
    """The database server could not be reached."""
    pass


class QueryError(DatabaseError):
    """A statement failed, or the wrapper was used wrongly."""

    def __init__(self, message: str, sql: Optional[str] = None, console: Optional[str] = None):
        super().__init__(message)
        self.sql = sql
        self.console = console


class DatabaseHalted(DatabaseError):
    """Raised by Database.halt(); carries the rendered debug console, if any."""

    def __init__(self, message: str = 'Execution halted', console: Optional[str] = None):
        super().__init__(message)
        self.console = console


class TransactionStatus(IntEnum):
    NONE = 0
    ACTIVE = 1
    FAILED = 2
    TEST = 3


def load_driver():
    """Import the MariaDB driver on first use."""
    try:
        import mariadb
    except ImportError:
        raise ConfigurationError(
            "mariadb is required for database access. "
            "Install with: pip install mariadb"
        ) from None
    return mariadb


class DatabaseConnection:
    """Holds credentials and opens the driver connection on first use."""

    def __init__(self, driver=None):
        self.db_logger = DatabaseLogger()
        self.logger = self.db_logger.logger
        self._driver = driver
        self.credentials: Optional[Dict[str, Any]] = None
        self.link = None

    @property
    def driver(self):
        if self._driver is None:
            self._driver = load_driver()
        return self._driver

    def configure(self, conn_params: Dict[str, Any]) -> None:
        """Store connection parameters; nothing is opened yet."""
        self._validate_config(conn_params)
        if self.link is not None and conn_params.get('is_new'):
            self.close()
        self.credentials = dict(conn_params)

    def _validate_config(self, conn_params: Dict[str, Any]) -> None:
        """Validate database connection parameters."""
        required_keys = ['host', 'database', 'user', 'password']
        for key in required_keys:
            if key not in conn_params or conn_params[key] is None:
                raise KeyError(f'No {key.title()} provided for DB connection')

    @property
    def is_open(self) -> bool:
        return self.link is not None

    def open(self):
        """
        Return the live connection, opening it if needed.

        Raises:
            ConfigurationError: connect() was never called
            driver.Error: the driver refused the connection
        """
        if self.link is not None:
            return self.link

        if self.credentials is None:
            raise ConfigurationError('connect() must be called before running queries')

        params = {
            'host': self.credentials['host'],
            'port': int(self.credentials.get('port') or 3306),
            'user': self.credentials['user'],
            'password': self.credentials['password'],
            'database': self.credentials['database'],
            'autocommit': True,
        }
        self.db_logger.log_connection(f"opening {params['user']}@{params['host']}:{params['port']}/{params['database']}")
        self.link = self.driver.connect(**params)
        return self.link

    def cursor(self):
        """Buffered dictionary cursor on the live connection."""
        return self.open().cursor(dictionary=True, buffered=True)

    def escape(self, value: str) -> str:
        return self.open().escape_string(value)

    def close(self) -> None:
        if self.link is None:
            return
        try:
            self.link.close()
            self.db_logger.log_connection('closed')
        except self.driver.Error as e:
            self.db_logger.log_error('close', e)
        finally:
            self.link = None
