"""Shared fixtures: a scripted stand-in for the mariadb driver module."""

import os
import tempfile

# Log files of the test run go to a scratch directory
os.environ.setdefault('LOG_DIR', tempfile.mkdtemp(prefix='tipline-logs-'))

import pytest

from tipline.database import Database


class FakeDriverError(Exception):
    """Plays the role of mariadb.Error."""


class FakeCursor:
    """Buffered dictionary cursor answering from the connection's rules."""

    def __init__(self, connection, dictionary=False, buffered=False):
        self.connection = connection
        self.dictionary = dictionary
        self.buffered = buffered
        self.description = None
        self.rowcount = -1
        self.lastrowid = None
        self.closed = False
        self._rows = []
        self._position = 0

    def execute(self, sql):
        driver = self.connection.driver
        driver.executed.append(sql)
        response = driver.respond(sql)

        if isinstance(response, Exception):
            raise response

        if isinstance(response, list):
            self._rows = [dict(row) for row in response]
            self._position = 0
            names = list(self._rows[0]) if self._rows else []
            self.description = tuple((name, 253, None, None, None, None, True) for name in names)
            self.rowcount = len(self._rows)
            return

        self.description = None
        self.rowcount = response
        if sql.lstrip().upper().startswith('INSERT'):
            driver.last_id += 1
            self.lastrowid = driver.last_id

    def fetchone(self):
        if self.connection.driver.fetch_error is not None:
            raise self.connection.driver.fetch_error
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return dict(row)

    def fetchall(self):
        rows = [dict(row) for row in self._rows[self._position:]]
        self._position = len(self._rows)
        return rows

    def scroll(self, value, mode='relative'):
        position = value if mode == 'absolute' else self._position + value
        if position < 0 or position >= len(self._rows):
            raise FakeDriverError('Position out of range')
        self._position = position

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, driver, params):
        self.driver = driver
        self.params = params
        self.closed = False

    def cursor(self, dictionary=False, buffered=False):
        return FakeCursor(self, dictionary=dictionary, buffered=buffered)

    def escape_string(self, value):
        return value.replace('\\', '\\\\').replace("'", "\\'").replace('"', '\\"')

    def close(self):
        self.closed = True


class FakeDriver:
    """
    Module-like object with `Error` and `connect()`.

    `on(fragment, response)` scripts the answer to every statement that
    contains `fragment` (case insensitive, first match wins): a list of row
    dicts, an affected row count or an exception to raise. Unmatched SELECT,
    SHOW and EXPLAIN statements return no rows, anything else affects one row.
    """

    Error = FakeDriverError

    def __init__(self):
        self.rules = []
        self.executed = []
        self.connections = []
        self.connect_error = None
        self.fetch_error = None
        self.last_id = 0

    def connect(self, **params):
        if self.connect_error is not None:
            raise self.connect_error
        connection = FakeConnection(self, params)
        self.connections.append(connection)
        return connection

    def on(self, fragment, response):
        self.rules.append((fragment.lower(), response))

    def respond(self, sql):
        lowered = sql.lower()
        for fragment, response in self.rules:
            if fragment in lowered:
                return response
        if lowered.lstrip().startswith(('select', 'show', 'explain')):
            return []
        return 1

    @property
    def last(self):
        return self.executed[-1] if self.executed else None


def make_database(driver, tmp_path, **options):
    cache_path = tmp_path / 'cache'
    cache_path.mkdir(exist_ok=True)
    options.setdefault('halt_on_errors', False)
    db = Database(driver=driver, cache_path=str(cache_path), log_path=str(tmp_path), **options)
    db.connect('localhost', 'tipline', 'secret', 'tipline')
    return db


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def db(driver, tmp_path):
    """Wrapper that returns False on errors instead of raising."""
    return make_database(driver, tmp_path)


@pytest.fixture
def strict_db(driver, tmp_path):
    """Wrapper that raises on errors."""
    return make_database(driver, tmp_path, halt_on_errors=True)


@pytest.fixture
def debug_db(driver, tmp_path):
    """Wrapper collecting debug information, viewable from any address."""
    return make_database(driver, tmp_path, debug=True)
