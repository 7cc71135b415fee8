"""
Database Module for Tipline - Main Database Class
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Query wrapper around a single lazily opened MariaDB connection: `?`
placeholder substitution, a file based result cache, transaction
bookkeeping and a debug console.

:copyright: (c) 2024-present tipline
"""

import os
import re
import time
from contextlib import contextmanager
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence, Union

from .base import (
    ConfigurationError, ConnectionFailed, DatabaseConnection, DatabaseError,
    DatabaseHalted, QueryError, TransactionStatus
)
from .cache import ResultCache
from .console import DebugConsole
from .debug import collect_backtrace, format_log_entry
from .messages import get_messages
from .notifier import SlowQueryNotifier
from .resources import CachedResource, CursorResource, RowResource


LEADING_WHITESPACE = re.compile(r'^\s+', re.MULTILINE)
INC_PATTERN = re.compile(r'INC\((-)?(.*?)\)', re.IGNORECASE)

Result = Union[RowResource, bool]


class Database:
    """
    Query wrapper for Tipline.

    Example:
        db = Database(cache_path='cache', debug=True)
        db.connect('localhost', 'tipline', 'secret', 'tipline')

        db.query('SELECT * FROM reports WHERE user_id = ?', [12])
        while (row := db.fetch_assoc()) is not None:
            print(row['sms_contents'])
    """

    def __init__(self, driver=None, cache_path: str = 'cache', console_show_records: int = 20,
                 debug: bool = False, debugger_ip: Optional[List[str]] = None,
                 halt_on_errors: bool = True, max_query_time: float = 10,
                 minimize_console: bool = True, log_path: str = '',
                 notification_webhook: Optional[str] = None, notifier_domain: str = '',
                 language: str = 'english'):
        """
        Initialize the wrapper. No connection is made here.

        Args:
            driver: DB-API driver module, `mariadb` when omitted
            cache_path: Directory for cached result sets
            console_show_records: Rows per query shown in the debug console
            debug: Collect debug information for every query
            debugger_ip: Addresses allowed to see debug output, empty for all
            halt_on_errors: Raise on fatal errors instead of returning False
            max_query_time: Seconds after which a query counts as slow
            minimize_console: Render the debug console collapsed
            log_path: Directory of the log.txt written by write_log()
            notification_webhook: URL receiving slow query alerts
            notifier_domain: Name of this site in slow query alerts
            language: Message table to use
        """
        self.connection = DatabaseConnection(driver)
        self.db_logger = self.connection.db_logger
        self.logger = self.connection.logger

        self.cache_path = cache_path
        self.console_show_records = console_show_records
        self.debug = debug
        self.debugger_ip = list(debugger_ip or [])
        self.halt_on_errors = halt_on_errors
        self.max_query_time = max_query_time
        self.minimize_console = minimize_console
        self.log_path = log_path

        self.language(language)
        self.console = DebugConsole()
        self.notifier = SlowQueryNotifier(notification_webhook, notifier_domain)

        self.last_result: Optional[Result] = None
        self.affected_rows: Optional[int] = None
        self.returned_rows = 0
        self.found_rows = 0
        self.column_info: Dict[str, Any] = {}
        self.last_insert_id: Optional[int] = None
        self.total_execution_time = 0.0
        self.transaction_status = TransactionStatus.NONE
        self.debug_info: Dict[str, List[Dict[str, Any]]] = {}
        self.warnings = {'charset': True}

    @classmethod
    def from_settings(cls, settings, driver=None) -> 'Database':
        """Build a wrapper from a Settings instance and register its credentials."""
        db = cls(
            driver=driver,
            cache_path=settings.cache_path,
            console_show_records=settings.console_show_records,
            debug=settings.debug,
            debugger_ip=settings.debugger_ips,
            halt_on_errors=settings.halt_on_errors,
            max_query_time=settings.max_query_time,
            minimize_console=settings.minimize_console,
            log_path=settings.log_path,
            notification_webhook=settings.slow_query_webhook_url,
            notifier_domain=settings.notifier_domain,
            language=settings.language,
        )
        db.connect(**settings.conn_params)
        return db

    # Connection

    def connect(self, host: str, user: str, password: str, database: str,
                port: int = 3306, is_new: bool = False) -> None:
        """
        Register credentials. The connection is opened by the first query.

        Args:
            is_new: Drop an already open connection so the next query reconnects
        """
        self.connection.configure({
            'host': host,
            'user': user,
            'password': password,
            'database': database,
            'port': port,
            'is_new': is_new,
        })

    def _connected(self) -> bool:
        if self.connection.is_open:
            return True
        try:
            self.connection.open()
        except self.connection.driver.Error as e:
            self.db_logger.log_error('connect', e)
            self._log('errors', {
                'message': self.messages['could_not_connect_to_database'],
                'error': str(e),
            }, error_class=ConnectionFailed)
            return False
        return True

    def close(self) -> None:
        self.connection.close()

    def get_link(self):
        """The live driver connection, opening it if needed."""
        if self._connected():
            return self.connection.link
        return False

    def health_check(self) -> bool:
        """Check if database connection is healthy."""
        try:
            return isinstance(self.query('SELECT 1 AS alive'), RowResource)
        except DatabaseError:
            return False

    def language(self, language: str) -> None:
        """Switch the message table used for debug output."""
        try:
            self.messages = get_messages(language)
        except KeyError:
            raise ConfigurationError(f"Unknown language: {language}") from None

    # Escaping

    def escape(self, value: Any) -> Union[str, bool]:
        """Escape a value for use inside a quoted SQL string."""
        if not self._connected():
            return False
        return self.connection.escape(str(value))

    def _quote(self, value: Any) -> str:
        if value is None:
            return 'NULL'
        if isinstance(value, bool):
            value = int(value)
        return "'" + self.escape(value) + "'"

    def implode(self, pieces: Sequence[Any]) -> str:
        """Escaped, quoted and comma separated values, e.g. for IN (...)."""
        return ','.join(self._quote(piece) for piece in pieces)

    # Query execution

    def _substitute(self, sql: str, replacements) -> Optional[str]:
        if replacements is None:
            return sql

        if not isinstance(replacements, (list, tuple)):
            self._log('unsuccessful-queries', {
                'query': sql,
                'error': self.messages['warning_replacements_not_array'],
            })
            return None

        markers = sql.count('?')
        if markers == 0:
            return sql
        if markers != len(replacements):
            self._log('unsuccessful-queries', {
                'query': sql,
                'error': self.messages['warning_replacements_wrong_number'],
            })
            return None

        # Single pass, so question marks inside values are left alone
        values = iter([self._quote(value) for value in replacements])
        return re.sub(r'\?', lambda match: next(values), sql)

    def query(self, sql: str, replacements: Optional[Sequence[Any]] = None,
              cache: Union[bool, float] = False, highlight: bool = False,
              calc_rows: bool = False) -> Result:
        """
        Run a statement.

        Args:
            sql: Statement, with `?` markers for values
            replacements: Values for the `?` markers, in order
            cache: Seconds a cached result stays valid, False to skip the cache
            highlight: Highlight this query in the debug console
            calc_rows: For SELECTs with LIMIT, fill found_rows with the row
                count the query would have returned without the LIMIT

        Returns:
            A RowResource for statements returning rows, True for other
            statements, False on failure when halt_on_errors is off

        Raises:
            QueryError: the statement failed and halt_on_errors is on
        """
        if not self._connected():
            return False

        sql = LEADING_WHITESPACE.sub('', sql).replace('\r\n', ' ')
        self.affected_rows = None

        sql = self._substitute(sql, replacements)
        if sql is None:
            return False

        if calc_rows and sql.lstrip()[:6].lower() == 'select' and 'SQL_CALC_FOUND_ROWS' not in sql:
            sql = re.sub('SELECT', 'SELECT SQL_CALC_FOUND_ROWS', sql, count=1, flags=re.IGNORECASE)

        self.last_result = None
        start_timer = time.perf_counter()

        cache_state = 'nocache'
        result_cache = None
        if cache:
            result_cache = ResultCache(self.cache_path, self.logger)
            if result_cache.usable():
                self.last_result = result_cache.read(sql, cache)
                if self.last_result is not None:
                    cache_state = 'cached'
            else:
                self._log('errors', {'message': self.messages['cache_path_not_writable']}, fatal=False)
                result_cache = None

        cursor = None
        error = None
        if self.last_result is None:
            self.db_logger.log_query(sql)
            try:
                cursor = self.connection.cursor()
                cursor.execute(sql)
            except self.connection.driver.Error as e:
                error = e
                if cursor is not None:
                    cursor.close()
                if self.transaction_status not in (TransactionStatus.NONE, TransactionStatus.TEST):
                    self.transaction_status = TransactionStatus.FAILED

        stop_timer = time.perf_counter()
        execution_time = stop_timer - start_timer
        self.total_execution_time += execution_time

        if execution_time > self.max_query_time:
            self.db_logger.log_slow_query(sql, execution_time, self.max_query_time)
            self.notifier.notify(self.messages, sql, execution_time, self.max_query_time)

        if error is not None:
            self.db_logger.log_error('query', error)
            self._log('unsuccessful-queries', {'query': sql, 'error': str(error)})
            return False

        if isinstance(self.last_result, CachedResource):
            is_select = True
            self.returned_rows = self.last_result.returned_rows
            self.found_rows = self.last_result.found_rows
            self.column_info = self.last_result.column_info
        else:
            is_select = cursor.description is not None
            self.returned_rows = self.found_rows = 0

            if is_select:
                resource = CursorResource(cursor, self.connection.driver.Error,
                                          on_error=lambda e, sql=sql: self._fetch_failed(sql, e))
                self.last_result = resource
                self.returned_rows = self.found_rows = len(resource)
                self.column_info = resource.columns()

                if calc_rows:
                    self.found_rows = self._found_rows()

                if result_cache is not None:
                    self._store(result_cache, sql, resource)
                    cache_state = 'refreshed'
            else:
                self.affected_rows = cursor.rowcount
                self.last_insert_id = cursor.lastrowid
                cursor.close()
                self.last_result = True

        if self.debug:
            self._record_success(sql, is_select, execution_time, highlight, cache_state)

        return self.last_result

    def _found_rows(self) -> int:
        sql = 'SELECT FOUND_ROWS() AS found_rows'
        cursor = None
        try:
            cursor = self.connection.cursor()
            cursor.execute(sql)
            row = cursor.fetchone()
        except self.connection.driver.Error as e:
            self.db_logger.log_error('found_rows', e)
            self._log('unsuccessful-queries', {'query': sql, 'error': str(e)})
            return 0
        finally:
            if cursor is not None:
                cursor.close()
        return int(row['found_rows']) if row else 0

    def _fetch_failed(self, sql: str, error: Exception) -> None:
        self.db_logger.log_error('fetch', error)
        self._log('unsuccessful-queries', {'query': sql, 'error': str(error)})

    def _store(self, result_cache: ResultCache, sql: str, resource: CursorResource) -> None:
        rows = list(resource)
        if rows:
            resource.seek(0)
        try:
            result_cache.write(sql, rows, self.returned_rows, self.found_rows, self.column_info)
        except (OSError, TypeError) as e:
            self.logger.warning(f"Could not cache query result: {e}")
            self._log('errors', {'message': self.messages['cache_path_not_writable'], 'error': str(e)}, fatal=False)

    def _explain(self, sql: str) -> Optional[List[Dict[str, Any]]]:
        # Statements like SHOW or DESCRIBE cannot be explained
        cursor = self.connection.cursor()
        try:
            cursor.execute('EXPLAIN ' + sql)
            return [dict(row) for row in cursor.fetchall()]
        except self.connection.driver.Error:
            return None
        finally:
            cursor.close()

    def _record_success(self, sql: str, is_select: bool, execution_time: float,
                        highlight: bool, cache_state: str) -> None:
        records = []
        explain = None
        warning = ''

        if is_select:
            resource = self.last_result
            if isinstance(resource, CursorResource):
                if self.console_show_records > 0:
                    for row in resource:
                        records.append(row)
                        if len(records) >= self.console_show_records:
                            break
                resource.seek(0)
                explain = self._explain(sql)
            else:
                records = [dict(row) for row in resource.rows[:self.console_show_records]]

            if records:
                same = [
                    entry for entry in self.debug_info.get('successful-queries', [])
                    if entry.get('records') and entry['records'] == records
                ]
                if same:
                    warning = self.messages['optimization_needed'] % len(same)
                    for entry in same:
                        entry['warning'] = warning

        self._log('successful-queries', {
            'query': sql,
            'records': records,
            'returned_rows': self.returned_rows,
            'explain': explain,
            'affected_rows': self.affected_rows,
            'execution_time': execution_time,
            'warning': warning,
            'highlight': highlight,
            'cache_state': cache_state,
            'transaction': self.transaction_status != TransactionStatus.NONE,
        }, fatal=False)

    def _succeeded(self) -> bool:
        return self.last_result is True or isinstance(self.last_result, RowResource)

    def _has_rows(self) -> bool:
        return isinstance(self.last_result, RowResource) and self.returned_rows > 0

    def select(self, columns: str, table: str, where: str = '', limit: str = '', order: str = '',
               replacements: Optional[Sequence[Any]] = None, cache: Union[bool, float] = False,
               highlight: bool = False, calc_rows: bool = False) -> Result:
        """Shorthand for a SELECT statement."""
        return self.query(
            f"SELECT {columns} FROM {table}"
            + (f" WHERE {where}" if where else '')
            + (f" ORDER BY {order}" if order else '')
            + (f" LIMIT {limit}" if limit else ''),
            replacements, cache, highlight, calc_rows
        )

    # Row access

    def _resource(self, resource) -> Optional[RowResource]:
        if resource is None:
            resource = self.last_result
        if isinstance(resource, RowResource):
            return resource
        self._log('errors', {'message': self.messages['not_a_valid_resource']})
        return None

    def fetch_assoc(self, resource: Optional[RowResource] = None) -> Optional[Dict[str, Any]]:
        """Next row as a dict, or None past the last row."""
        resource = self._resource(resource)
        if resource is None:
            return None
        return resource.fetch()

    def fetch_obj(self, resource: Optional[RowResource] = None) -> Optional[SimpleNamespace]:
        """Next row as an object with one attribute per column."""
        row = self.fetch_assoc(resource)
        return SimpleNamespace(**row) if row is not None else None

    def _fetch_all(self, index: str, resource, convert):
        resource = self._resource(resource)
        if resource is None:
            return None

        keyed = bool(index and index.strip())
        result = {} if keyed else []
        if resource.seek(0):
            for row in resource:
                if keyed:
                    key = row[index] if index in row else len(result)
                    result[key] = convert(row)
                else:
                    result.append(convert(row))
        return result

    def fetch_assoc_all(self, index: str = '', resource: Optional[RowResource] = None):
        """
        All rows of a result, from the first one.

        Args:
            index: Column whose value keys the returned dict; a list is
                returned when empty
            resource: Result to read, the last query's when omitted
        """
        return self._fetch_all(index, resource, dict)

    def fetch_obj_all(self, index: str = '', resource: Optional[RowResource] = None):
        """Same as fetch_assoc_all() with rows as objects."""
        return self._fetch_all(index, resource, lambda row: SimpleNamespace(**row))

    def get_columns(self, resource: Optional[RowResource] = None) -> Optional[Dict[str, Dict[str, Any]]]:
        """Column information of a result, keyed by column name."""
        resource = self._resource(resource)
        if resource is None:
            return None
        return resource.columns()

    def seek(self, row: int, resource: Optional[RowResource] = None) -> bool:
        """Move the row pointer of a result to `row` (0 based)."""
        resource = self._resource(resource)
        if resource is None:
            return False
        if resource.seek(row):
            return True
        self._log('errors', {'message': self.messages['could_not_seek']})
        return False

    # Lookups

    def _where(self, where: str) -> str:
        return f" WHERE {where}" if where else ''

    def dcount(self, column: str, table: str, where: str = '', replacements=None,
               cache: Union[bool, float] = False, highlight: bool = False):
        """Number of rows matching `where`, or False."""
        self.query(f"SELECT COUNT({column}) AS counted FROM {table}{self._where(where)}",
                   replacements, cache, highlight)
        if self._has_rows():
            return self.fetch_assoc()['counted']
        return False

    def dlookup(self, column: str, table: str, where: str = '', replacements=None,
                cache: Union[bool, float] = False, highlight: bool = False):
        """
        Values of one or more columns of the first matching row.

        Returns:
            The value for a single column, a dict for several columns, the
            whole row for `*`, or False when nothing matched
        """
        self.query(f"SELECT {column} FROM {table}{self._where(where)} LIMIT 1",
                   replacements, cache, highlight)
        if not self._has_rows():
            return False

        row = self.fetch_assoc()
        if column.strip() == '*':
            return row

        names = [name.strip().replace('`', '') for name in column.split(',')]
        if len(names) == 1:
            return row.get(names[0])
        return {name: row[name] for name in names if name in row}

    def dmax(self, column: str, table: str, where: str = '', replacements=None,
             cache: Union[bool, float] = False, highlight: bool = False):
        """Largest value of `column`, or False."""
        self.query(f"SELECT MAX({column}) AS maximum FROM {table}{self._where(where)}",
                   replacements, cache, highlight)
        if self._has_rows():
            return self.fetch_assoc()['maximum']
        return False

    def dsum(self, column: str, table: str, where: str = '', replacements=None,
             cache: Union[bool, float] = False, highlight: bool = False):
        """Sum of `column`, or False."""
        self.query(f"SELECT SUM({column}) AS total FROM {table}{self._where(where)}",
                   replacements, cache, highlight)
        if self._has_rows():
            return self.fetch_assoc()['total']
        return False

    # Writes

    @staticmethod
    def _column_list(columns) -> str:
        return '`' + '`,`'.join(columns) + '`'

    @staticmethod
    def _assignments(columns: Dict[str, Any]):
        """`col` = ? pairs and their values, honouring INC(n) and INC(-n)."""
        parts = []
        values = []
        for name, value in columns.items():
            match = INC_PATTERN.fullmatch(value.strip()) if isinstance(value, str) else None
            if match:
                parts.append(f"`{name}` = `{name}` {'-' if match.group(1) else '+'} ?")
                values.append(match.group(2))
            else:
                parts.append(f"`{name}` = ?")
                values.append(value)
        return ', '.join(parts), values

    def insert(self, table: str, columns: Dict[str, Any], ignore: bool = False,
               highlight: bool = False) -> bool:
        """Insert one row given as {column: value}."""
        markers = ','.join('?' * len(columns))
        self.query(
            f"INSERT{' IGNORE' if ignore else ''} INTO {table} ({self._column_list(columns)}) VALUES ({markers})",
            list(columns.values()), False, highlight
        )
        return self._succeeded()

    def insert_bulk(self, table: str, columns: Sequence[str], data: Sequence[Sequence[Any]],
                    ignore: bool = False) -> bool:
        """Insert many rows with one statement; `data` holds one list of values per row."""
        if not data or not all(isinstance(values, (list, tuple)) for values in data):
            self._log('errors', {'message': self.messages['data_not_an_array']})
            return False

        rows = ','.join(f"({self.implode(values)})" for values in data)
        self.query(
            f"INSERT{' IGNORE' if ignore else ''} INTO {table} ({self._column_list(columns)}) VALUES {rows}"
        )
        return self._succeeded()

    def insert_update(self, table: str, columns: Dict[str, Any],
                      update: Optional[Dict[str, Any]] = None, highlight: bool = False) -> bool:
        """
        Insert a row, or update it when it collides with an existing key.

        Args:
            columns: {column: value} to insert
            update: {column: value} to set on collision; `columns` when empty
        """
        markers = ','.join('?' * len(columns))
        if update:
            update_cols, update_values = self._assignments(update)
        else:
            update_cols = ', '.join(f"`{name}` = ?" for name in columns)
            update_values = list(columns.values())

        self.query(
            f"INSERT INTO {table} ({self._column_list(columns)}) VALUES ({markers}) "
            f"ON DUPLICATE KEY UPDATE {update_cols}",
            list(columns.values()) + update_values, False, highlight
        )
        return self._succeeded()

    def update(self, table: str, columns: Dict[str, Any], where: str = '',
               replacements: Optional[Sequence[Any]] = None, highlight: bool = False) -> bool:
        """Update rows matching `where`; `where` may carry its own `?` markers."""
        if replacements is not None and not isinstance(replacements, (list, tuple)):
            self._log('unsuccessful-queries', {
                'query': '',
                'error': self.messages['warning_replacements_not_array'],
            })
            return False

        assignments, values = self._assignments(columns)
        self.query(f"UPDATE {table} SET {assignments}{self._where(where)}",
                   values + list(replacements or []), False, highlight)
        return self._succeeded()

    def delete(self, table: str, where: str = '', replacements: Optional[Sequence[Any]] = None,
               highlight: bool = False) -> bool:
        self.query(f"DELETE FROM {table}{self._where(where)}", replacements, False, highlight)
        return self._succeeded()

    def truncate(self, table: str, highlight: bool = False) -> bool:
        self.query(f"TRUNCATE {table}", None, False, highlight)
        return self._succeeded()

    def insert_id(self):
        """AUTO_INCREMENT value generated by the last INSERT."""
        if not self._connected():
            return False
        if self.last_result is None:
            self._log('errors', {'message': self.messages['not_a_valid_resource']})
            return False
        return self.last_insert_id

    # Introspection

    def get_tables(self) -> List[str]:
        resource = self.query('SHOW TABLES')
        if not isinstance(resource, RowResource):
            return []
        return [next(iter(row.values())) for row in self.fetch_assoc_all(resource=resource)]

    def get_table_columns(self, table: str) -> Optional[Dict[str, Dict[str, Any]]]:
        """Column definitions of `table`, keyed by column name."""
        resource = self.query(f"SHOW COLUMNS FROM `{table.replace('`', '')}`")
        if not isinstance(resource, RowResource):
            return None
        return self.fetch_assoc_all('Field', resource)

    def get_table_status(self, pattern: str = '') -> Optional[Dict[str, Dict[str, Any]]]:
        """SHOW TABLE STATUS keyed by table name, optionally filtered by a LIKE pattern."""
        if pattern.strip():
            resource = self.query('SHOW TABLE STATUS LIKE ?', [pattern])
        else:
            resource = self.query('SHOW TABLE STATUS')
        if not isinstance(resource, RowResource):
            return None
        return self.fetch_assoc_all('Name', resource)

    def table_exists(self, table: str) -> bool:
        resource = self.query('SHOW TABLES LIKE ?', [table])
        return isinstance(resource, RowResource) and self.fetch_assoc(resource) is not None

    def optimize(self) -> None:
        """Run OPTIMIZE TABLE on every table that has unused space."""
        for table in (self.get_table_status() or {}).values():
            if int(table.get('Data_free') or 0) > 0:
                self.query(f"OPTIMIZE TABLE `{table['Name']}`")

    def parse_file(self, path: str) -> bool:
        """
        Run every statement of an SQL file.

        Statements end with `;` at the end of a line. Blank lines and lines
        starting with `--` or `#` are skipped.

        Returns:
            True if the file was read and every statement succeeded
        """
        if not self._connected():
            return False

        try:
            with open(path, 'r', encoding='utf-8') as f:
                lines = f.readlines()
        except OSError as e:
            self._log('errors', {
                'message': f"{self.messages['file_could_not_be_opened']}: {path}",
                'error': str(e),
            })
            return False

        succeeded = True
        statement = ''
        for line in lines:
            stripped = line.strip()
            if not stripped or stripped.startswith('--') or stripped.startswith('#'):
                continue
            statement += line
            if stripped.endswith(';'):
                if self.query(statement.rstrip().rstrip(';')) is False:
                    succeeded = False
                statement = ''
        return succeeded

    def set_charset(self, charset: str = 'utf8', collation: str = 'utf8_general_ci') -> bool:
        self.warnings.pop('charset', None)
        self.query('SET NAMES ? COLLATE ?', [charset, collation])
        return self._succeeded()

    # Transactions

    def transaction_start(self, test_only: bool = False) -> bool:
        """
        Start a transaction.

        Args:
            test_only: Roll the transaction back on completion whatever happens

        Returns:
            True if the transaction was started
        """
        sql = 'START TRANSACTION'
        if self.transaction_status == TransactionStatus.NONE:
            self.transaction_status = TransactionStatus.TEST if test_only else TransactionStatus.ACTIVE
            self.query(sql)
            return self._succeeded()

        self._log('unsuccessful-queries', {
            'query': sql,
            'error': self.messages['transaction_in_progress'],
        }, fatal=False)
        return False

    def transaction_complete(self) -> bool:
        """
        Finish the running transaction.

        A failed or test transaction is rolled back, anything else is
        committed.

        Returns:
            True if committed, or if a test transaction was rolled back
        """
        status = self.transaction_status
        if status == TransactionStatus.NONE:
            self._log('unsuccessful-queries', {
                'query': 'COMMIT',
                'error': self.messages['no_transaction_in_progress'],
            }, fatal=False)
            return False

        try:
            if status in (TransactionStatus.TEST, TransactionStatus.FAILED):
                self.query('ROLLBACK')
                return status == TransactionStatus.TEST

            self.query('COMMIT')
            return self._succeeded() and self.transaction_status == TransactionStatus.ACTIVE
        finally:
            self.transaction_status = TransactionStatus.NONE

    @contextmanager
    def transaction(self, test_only: bool = False):
        """
        Context manager around transaction_start() / transaction_complete().

        An exception inside the block marks the transaction failed, so it is
        rolled back, and is re-raised.
        """
        if not self.transaction_start(test_only):
            raise QueryError(self.messages['transaction_in_progress'], sql='START TRANSACTION')
        try:
            yield self
        except Exception:
            if self.transaction_status == TransactionStatus.ACTIVE:
                self.transaction_status = TransactionStatus.FAILED
            self.transaction_complete()
            raise
        if not self.transaction_complete() and not test_only:
            raise QueryError('Transaction was rolled back', sql='COMMIT')

    # Debugging

    def _log(self, category: str, data: Dict[str, Any], fatal: bool = True,
             error_class=QueryError) -> None:
        """
        Record an event under a debug console category.

        Fatal events raise `error_class` when halt_on_errors is on.
        """
        data = dict(data)

        if category == 'warnings':
            self.logger.warning(data.get('message', ''))
        elif category != 'successful-queries':
            detail = data.get('error') or data.get('message') or ''
            if data.get('query'):
                self.logger.error(f"{category}: {detail} | Query: {data['query']}")
            else:
                self.logger.error(f"{category}: {detail}")

        if self.debug:
            if category != 'warnings':
                data['backtrace'] = collect_backtrace()
            self.debug_info.setdefault(category, []).append(data)

        if fatal and self.halt_on_errors:
            message = data.get('message') or data.get('error') or category
            if data.get('message') and data.get('error'):
                message = f"{data['message']}: {data['error']}"
            console = self._render_console() if self.debug else None
            if error_class is QueryError:
                raise QueryError(message, sql=data.get('query'), console=console)
            raise error_class(message)

    def _debugger_allowed(self, remote_addr: Optional[str]) -> bool:
        return self.debug and (not self.debugger_ip or remote_addr in self.debugger_ip)

    def _render_console(self, request_globals: Optional[Dict[str, Any]] = None) -> str:
        logged = {entry.get('message') for entry in self.debug_info.get('warnings', [])}
        for warning in self.warnings:
            message = self.messages['warning_' + warning]
            if message not in logged:
                self._log('warnings', {'message': message}, fatal=False)

        return self.console.render(
            self.debug_info,
            self.messages,
            total_execution_time=self.total_execution_time,
            minimized=self.minimize_console,
            request_globals=request_globals,
        )

    def show_debug_console(self, remote_addr: Optional[str] = None,
                           request_globals: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """
        Render the debug console as HTML.

        Args:
            remote_addr: Address of the viewer, checked against debugger_ip
            request_globals: Extra {section: {name: value}} tables to show,
                such as request arguments or headers

        Returns:
            The HTML, or None when debugging is off or the viewer is not allowed
        """
        if not self._debugger_allowed(remote_addr):
            return None
        return self._render_console(request_globals)

    def write_log(self, remote_addr: Optional[str] = None) -> bool:
        """Append the successful queries to log.txt under log_path."""
        if not self._debugger_allowed(remote_addr):
            return False

        file_name = os.path.join(self.log_path or '', 'log.txt')
        try:
            with open(file_name, 'a', encoding='utf-8') as f:
                for entry in self.debug_info.get('successful-queries', []):
                    f.write(format_log_entry(entry, self.messages))
        except OSError as e:
            self._log('errors', {
                'message': self.messages['could_not_write_to_log'],
                'error': str(e),
            })
            return False
        return True

    def halt(self, remote_addr: Optional[str] = None) -> None:
        """Stop processing; the debug console travels with the exception."""
        raise DatabaseHalted(console=self.show_debug_console(remote_addr))
