"""
Message tables for the query wrapper.

Only English ships. Each table maps a message key to its text; some texts
carry `%s` placeholders that are filled with the `%` operator.
"""

from typing import Dict


ENGLISH = {
    'affected_rows': 'affected rows',
    'backtrace': 'backtrace',
    'cache_path_not_writable': 'Could not cache query. Make sure path exists and is writable.',
    'close_all': 'close all',
    'could_not_connect_to_database': 'Could not connect to database',
    'could_not_seek': 'could not seek to specified row',
    'could_not_select_database': 'Could not select database',
    'could_not_write_to_log': 'Could not write to log file. Make sure the folder exists and is writable.',
    'email_subject': 'Slow query on %s!',
    'email_content': 'The following query exceeded normal running time of %s seconds by running %s seconds: \n\n %s',
    'errors': 'errors',
    'execution_time': 'execution time',
    'explain': 'explain',
    'data_not_an_array': 'The third argument of insert_bulk() needs to be a list of lists.',
    'file': 'file',
    'file_could_not_be_opened': 'Could not open file',
    'from_cache': 'from cache',
    'function': 'function',
    'globals': 'globals',
    'line': 'line',
    'miliseconds': 'ms',
    'mysql_error': 'MySQL error',
    'no_transaction_in_progress': 'No transaction in progress.',
    'not_a_valid_resource': 'Not a valid resource (make sure you pass a resource to fetch_assoc()/fetch_obj() if you are executing a query inside the loop)',
    'optimization_needed': 'WARNING: The first few results returned by this query are the same as returned by %s other queries!',
    'returned_rows': 'returned rows',
    'successful_queries': 'successful queries',
    'to_top': 'to the top',
    'transaction_in_progress': 'Transaction could not be started as another transaction is in progress.',
    'unsuccessful_queries': 'unsuccessful queries',
    'warning_charset': 'No default charset and collation were set. Call set_charset() after connecting to the database.',
    'warning_replacements_not_array': 'replacements must be a list of values',
    'warning_replacements_wrong_number': 'the number of items to replace is different than the number of items in the replacements list',
    'warnings': 'warnings',
}

LANGUAGES = {
    'english': ENGLISH,
}


def get_messages(language: str) -> Dict[str, str]:
    """Return the message table for `language`, raising KeyError if unknown."""
    return LANGUAGES[language.lower()]
