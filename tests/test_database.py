"""Tests for the query wrapper: connection, substitution, reads and writes."""

from types import SimpleNamespace

import pytest

from tipline.database import (
    ConfigurationError, ConnectionFailed, CursorResource, Database, QueryError
)


REPORT_ROWS = [
    {'id': 1, 'user_id': 3, 'location_id': None, 'sms_contents': 'first'},
    {'id': 2, 'user_id': 3, 'location_id': 9, 'sms_contents': 'second'},
]


class TestConnection:
    """Lazy connection handling."""

    def test_connect_does_not_open(self, db, driver):
        """Registering credentials does not touch the server."""
        assert driver.connections == []

    def test_first_query_opens_connection(self, db, driver):
        db.query('SELECT 1')

        assert len(driver.connections) == 1
        params = driver.connections[0].params
        assert params['host'] == 'localhost'
        assert params['port'] == 3306
        assert params['database'] == 'tipline'
        assert params['autocommit'] is True

    def test_connection_is_reused(self, db, driver):
        db.query('SELECT 1')
        db.query('SELECT 2')

        assert len(driver.connections) == 1

    def test_missing_credentials_raise(self, driver):
        db = Database(driver=driver)

        with pytest.raises(KeyError, match='No Password provided'):
            db.connect('localhost', 'tipline', None, 'tipline')

    def test_query_before_connect(self, driver):
        db = Database(driver=driver)

        with pytest.raises(ConfigurationError):
            db.query('SELECT 1')

    def test_is_new_reconnects(self, db, driver):
        db.query('SELECT 1')
        db.connect('localhost', 'tipline', 'secret', 'tipline', is_new=True)

        assert driver.connections[0].closed is True

        db.query('SELECT 1')
        assert len(driver.connections) == 2

    def test_connection_failure_raises(self, strict_db, driver):
        driver.connect_error = driver.Error('Access denied')

        with pytest.raises(ConnectionFailed, match='Access denied'):
            strict_db.query('SELECT 1')

    def test_connection_failure_returns_false(self, debug_db, driver):
        driver.connect_error = driver.Error('Access denied')

        assert debug_db.query('SELECT 1') is False
        error = debug_db.debug_info['errors'][0]
        assert error['message'] == debug_db.messages['could_not_connect_to_database']
        assert error['error'] == 'Access denied'

    def test_health_check(self, db, driver):
        assert db.health_check() is True

        driver.connect_error = driver.Error('gone')
        db.close()
        assert db.health_check() is False

    def test_unknown_language(self, driver):
        with pytest.raises(ConfigurationError):
            Database(driver=driver, language='klingon')


class TestSubstitution:
    """`?` markers and escaping."""

    def test_values_are_quoted_and_escaped(self, db, driver):
        db.query('SELECT * FROM reports WHERE id = ? AND sms_contents = ?', [3, "it's"])

        assert driver.last == "SELECT * FROM reports WHERE id = '3' AND sms_contents = 'it\\'s'"

    def test_question_marks_inside_values(self, db, driver):
        db.query('SELECT * FROM reports WHERE sms_contents = ? AND id = ?', ['why?', 1])

        assert driver.last == "SELECT * FROM reports WHERE sms_contents = 'why?' AND id = '1'"

    def test_none_and_booleans(self, db, driver):
        db.query('UPDATE users SET phone = ?, active = ?', [None, True])

        assert driver.last == "UPDATE users SET phone = NULL, active = '1'"

    def test_wrong_number_of_replacements(self, debug_db, driver):
        result = debug_db.query('SELECT * FROM reports WHERE id = ? AND user_id = ?', [1])

        assert result is False
        assert not any(sql.startswith('SELECT * FROM reports') for sql in driver.executed)
        entry = debug_db.debug_info['unsuccessful-queries'][0]
        assert entry['error'] == debug_db.messages['warning_replacements_wrong_number']

    def test_wrong_number_of_replacements_raises(self, strict_db):
        with pytest.raises(QueryError):
            strict_db.query('SELECT * FROM reports WHERE id = ?', [1, 2])

    def test_replacements_must_be_a_list(self, db, driver):
        assert db.query('SELECT * FROM reports WHERE id = ?', '1') is False
        assert driver.executed == []

    def test_no_markers_leaves_sql_alone(self, db, driver):
        db.query('SELECT * FROM reports', [1])

        assert driver.last == 'SELECT * FROM reports'

    def test_leading_whitespace_is_removed(self, db, driver):
        db.query("""
            SELECT 1
            FROM dual
        """)

        assert driver.last == 'SELECT 1\nFROM dual\n'

    def test_implode(self, db):
        assert db.implode(['a', "b'c", 3]) == "'a','b\\'c','3'"


class TestReads:
    """SELECT results and row access."""

    def test_select_returns_resource(self, db, driver):
        driver.on('FROM reports', REPORT_ROWS)

        result = db.select('*', 'reports')

        assert isinstance(result, CursorResource)
        assert db.returned_rows == 2
        assert db.found_rows == 2
        assert db.fetch_assoc()['sms_contents'] == 'first'
        assert db.fetch_assoc()['sms_contents'] == 'second'
        assert db.fetch_assoc() is None

    def test_empty_result_is_still_a_resource(self, db, driver):
        driver.on('FROM reports', [])

        result = db.select('*', 'reports')

        assert result
        assert db.returned_rows == 0
        assert db.fetch_assoc() is None

    def test_select_builds_statement(self, db, driver):
        db.select('id', 'reports', where='user_id = ?', order='id DESC', limit='5', replacements=[7])

        assert driver.last == "SELECT id FROM reports WHERE user_id = '7' ORDER BY id DESC LIMIT 5"

    def test_calc_rows(self, db, driver):
        driver.on('FOUND_ROWS()', [{'found_rows': 42}])
        driver.on('FROM reports', REPORT_ROWS)

        db.select('*', 'reports', limit='2', calc_rows=True)

        assert 'SELECT SQL_CALC_FOUND_ROWS * FROM reports LIMIT 2' in driver.executed
        assert db.returned_rows == 2
        assert db.found_rows == 42

    def test_calc_rows_failure(self, debug_db, driver):
        driver.on('FOUND_ROWS()', driver.Error('Lost connection'))
        driver.on('FROM reports', REPORT_ROWS)

        result = debug_db.select('*', 'reports', limit='2', calc_rows=True)

        assert isinstance(result, CursorResource)
        assert debug_db.found_rows == 0
        entry = debug_db.debug_info['unsuccessful-queries'][0]
        assert entry['query'] == 'SELECT FOUND_ROWS() AS found_rows'
        assert entry['error'] == 'Lost connection'

    def test_calc_rows_failure_raises(self, strict_db, driver):
        driver.on('FOUND_ROWS()', driver.Error('Lost connection'))
        driver.on('FROM reports', REPORT_ROWS)

        with pytest.raises(QueryError, match='Lost connection'):
            strict_db.select('*', 'reports', limit='2', calc_rows=True)

    def test_fetch_failure(self, debug_db, driver):
        driver.on('FROM reports', REPORT_ROWS)
        debug_db.select('*', 'reports')
        driver.fetch_error = driver.Error('Lost connection')

        assert debug_db.fetch_assoc() is None
        entry = debug_db.debug_info['unsuccessful-queries'][-1]
        assert entry['query'] == 'SELECT * FROM reports'
        assert entry['error'] == 'Lost connection'

    def test_fetch_failure_raises(self, strict_db, driver):
        driver.on('FROM reports', REPORT_ROWS)
        strict_db.select('*', 'reports')
        driver.fetch_error = driver.Error('Lost connection')

        with pytest.raises(QueryError, match='Lost connection'):
            strict_db.fetch_assoc()

    def test_action_statement(self, db, driver):
        driver.on('UPDATE reports', 3)

        assert db.query("UPDATE reports SET user_id = 1") is True
        assert db.affected_rows == 3

    def test_failed_query_returns_false(self, db, driver):
        driver.on('FROM nowhere', driver.Error("Table 'nowhere' doesn't exist"))

        assert db.query('SELECT * FROM nowhere') is False

    def test_failed_query_raises(self, strict_db, driver):
        driver.on('FROM nowhere', driver.Error("Table 'nowhere' doesn't exist"))

        with pytest.raises(QueryError) as excinfo:
            strict_db.query('SELECT * FROM nowhere')

        assert excinfo.value.sql == 'SELECT * FROM nowhere'
        assert "doesn't exist" in str(excinfo.value)

    def test_fetch_obj(self, db, driver):
        driver.on('FROM reports', REPORT_ROWS)
        db.select('*', 'reports')

        row = db.fetch_obj()

        assert isinstance(row, SimpleNamespace)
        assert row.id == 1
        assert row.sms_contents == 'first'

    def test_fetch_assoc_all_starts_from_first_row(self, db, driver):
        driver.on('FROM reports', REPORT_ROWS)
        db.select('*', 'reports')
        db.fetch_assoc()

        assert [row['id'] for row in db.fetch_assoc_all()] == [1, 2]

    def test_fetch_assoc_all_with_index(self, db, driver):
        driver.on('FROM reports', REPORT_ROWS)
        db.select('*', 'reports')

        rows = db.fetch_assoc_all('id')

        assert set(rows) == {1, 2}
        assert rows[2]['sms_contents'] == 'second'

    def test_fetch_obj_all(self, db, driver):
        driver.on('FROM reports', REPORT_ROWS)
        db.select('*', 'reports')

        assert [row.sms_contents for row in db.fetch_obj_all()] == ['first', 'second']

    def test_seek(self, db, driver):
        driver.on('FROM reports', REPORT_ROWS)
        db.select('*', 'reports')

        assert db.seek(1) is True
        assert db.fetch_assoc()['id'] == 2

    def test_seek_out_of_range(self, debug_db, driver):
        driver.on('FROM reports', REPORT_ROWS)
        debug_db.select('*', 'reports')

        assert debug_db.seek(5) is False
        assert debug_db.debug_info['errors'][-1]['message'] == debug_db.messages['could_not_seek']

    def test_fetch_after_action_statement(self, db):
        db.query('DELETE FROM reports')

        assert db.fetch_assoc() is None

    def test_fetch_after_action_statement_raises(self, strict_db):
        strict_db.query('DELETE FROM reports')

        with pytest.raises(QueryError):
            strict_db.fetch_assoc()

    def test_get_columns(self, db, driver):
        driver.on('FROM reports', REPORT_ROWS)
        db.select('*', 'reports')

        columns = db.get_columns()

        assert list(columns) == ['id', 'user_id', 'location_id', 'sms_contents']
        assert columns['id']['name'] == 'id'


class TestLookups:

    def test_dcount(self, db, driver):
        driver.on('COUNT(', [{'counted': 5}])

        assert db.dcount('*', 'reports', 'user_id = ?', [3]) == 5
        assert driver.last == "SELECT COUNT(*) AS counted FROM reports WHERE user_id = '3'"

    def test_dlookup_single_column(self, db, driver):
        driver.on('FROM targets', [{'email': 'mayor@example.org'}])

        assert db.dlookup('email', 'targets', 'id = ?', [4]) == 'mayor@example.org'
        assert driver.last == "SELECT email FROM targets WHERE id = '4' LIMIT 1"

    def test_dlookup_several_columns(self, db, driver):
        driver.on('FROM targets', [{'fname': 'Ada', 'lname': 'Byron'}])

        assert db.dlookup('fname, lname', 'targets') == {'fname': 'Ada', 'lname': 'Byron'}

    def test_dlookup_no_match(self, db, driver):
        driver.on('FROM targets', [])

        assert db.dlookup('email', 'targets', 'id = ?', [99]) is False

    def test_dmax_and_dsum(self, db, driver):
        driver.on('MAX(', [{'maximum': 12}])
        driver.on('SUM(', [{'total': 30}])

        assert db.dmax('id', 'reports') == 12
        assert db.dsum('user_id', 'reports') == 30


class TestWrites:

    def test_insert(self, db, driver):
        assert db.insert('reports', {'user_id': 3, 'sms_contents': 'hi'}) is True
        assert driver.last == "INSERT INTO reports (`user_id`,`sms_contents`) VALUES ('3','hi')"
        assert db.insert_id() == 1

    def test_insert_ignore(self, db, driver):
        db.insert('targets', {'email': 'a@example.org'}, ignore=True)

        assert driver.last.startswith('INSERT IGNORE INTO targets')

    def test_insert_bulk(self, db, driver):
        assert db.insert_bulk('targets', ['fname', 'lname'], [['Ada', 'Byron'], ['Alan', None]]) is True
        assert driver.last == "INSERT INTO targets (`fname`,`lname`) VALUES ('Ada','Byron'),('Alan',NULL)"

    def test_insert_bulk_needs_lists(self, debug_db, driver):
        assert debug_db.insert_bulk('targets', ['fname'], ['Ada']) is False
        assert debug_db.debug_info['errors'][0]['message'] == debug_db.messages['data_not_an_array']
        assert driver.executed == []

    def test_insert_update(self, db, driver):
        db.insert_update('targets', {'id': 1, 'email': 'a@example.org'}, {'email': 'b@example.org'})

        assert driver.last == (
            "INSERT INTO targets (`id`,`email`) VALUES ('1','a@example.org') "
            "ON DUPLICATE KEY UPDATE `email` = 'b@example.org'"
        )

    def test_insert_update_defaults_to_inserted_values(self, db, driver):
        db.insert_update('targets', {'id': 1, 'email': 'a@example.org'})

        assert driver.last == (
            "INSERT INTO targets (`id`,`email`) VALUES ('1','a@example.org') "
            "ON DUPLICATE KEY UPDATE `id` = '1', `email` = 'a@example.org'"
        )

    def test_update(self, db, driver):
        assert db.update('targets', {'email': 'x@example.org'}, 'id = ?', [4]) is True
        assert driver.last == "UPDATE targets SET `email` = 'x@example.org' WHERE id = '4'"

    def test_update_increments(self, db, driver):
        db.update('users', {'logins': 'INC(2)', 'strikes': 'INC(-1)'}, 'id = ?', [4])

        assert driver.last == (
            "UPDATE users SET `logins` = `logins` + '2', `strikes` = `strikes` - '1' WHERE id = '4'"
        )

    def test_update_inc_must_be_whole_value(self, db, driver):
        db.update('reports', {'sms_contents': 'call INC(5) now'})

        assert driver.last == "UPDATE reports SET `sms_contents` = 'call INC(5) now'"

    def test_update_replacements_must_be_a_list(self, db, driver):
        assert db.update('targets', {'email': 'x'}, 'id = ?', 4) is False
        assert driver.executed == []

    def test_delete_and_truncate(self, db, driver):
        assert db.delete('reports', 'id = ?', [2]) is True
        assert driver.last == "DELETE FROM reports WHERE id = '2'"

        assert db.truncate('reports') is True
        assert driver.last == 'TRUNCATE reports'

    def test_insert_id_before_any_query(self, db):
        assert db.insert_id() is False


class TestIntrospection:

    def test_get_tables(self, db, driver):
        driver.on('SHOW TABLES', [{'Tables_in_tipline': 'reports'}, {'Tables_in_tipline': 'users'}])

        assert db.get_tables() == ['reports', 'users']

    def test_table_exists(self, db, driver):
        driver.on("LIKE 'reports'", [{'Tables_in_tipline': 'reports'}])

        assert db.table_exists('reports') is True
        assert db.table_exists('missing') is False

    def test_get_table_columns(self, db, driver):
        driver.on('SHOW COLUMNS', [{'Field': 'id', 'Type': 'int(11)'}, {'Field': 'email', 'Type': 'varchar(50)'}])

        columns = db.get_table_columns('targets')

        assert driver.last == 'SHOW COLUMNS FROM `targets`'
        assert columns['email']['Type'] == 'varchar(50)'

    def test_optimize_only_fragmented_tables(self, db, driver):
        driver.on('SHOW TABLE STATUS', [
            {'Name': 'reports', 'Data_free': 4096},
            {'Name': 'users', 'Data_free': 0},
        ])

        db.optimize()

        assert 'OPTIMIZE TABLE `reports`' in driver.executed
        assert 'OPTIMIZE TABLE `users`' not in driver.executed

    def test_set_charset(self, db, driver):
        assert db.set_charset() is True
        assert driver.last == "SET NAMES 'utf8' COLLATE 'utf8_general_ci'"
        assert 'charset' not in db.warnings


class TestParseFile:

    def test_runs_each_statement(self, db, driver, tmp_path):
        sql_file = tmp_path / 'setup.sql'
        sql_file.write_text(
            "-- comment\n"
            "# another comment\n"
            "\n"
            "CREATE TABLE a (id INT);\n"
            "INSERT INTO a VALUES (1);\n"
        )

        assert db.parse_file(str(sql_file)) is True
        assert driver.executed == ['CREATE TABLE a (id INT)', 'INSERT INTO a VALUES (1)']

    def test_failing_statement(self, db, driver, tmp_path):
        driver.on('CREATE TABLE b', driver.Error('syntax error'))
        sql_file = tmp_path / 'setup.sql'
        sql_file.write_text("CREATE TABLE a (id INT);\nCREATE TABLE b (;\nCREATE TABLE c (id INT);\n")

        assert db.parse_file(str(sql_file)) is False
        assert 'CREATE TABLE c (id INT)' in driver.executed

    def test_missing_file(self, db, tmp_path):
        assert db.parse_file(str(tmp_path / 'missing.sql')) is False
