"""
Active record base class and list helpers.

A Table subclass names its table, its primary key and a mapping of column
names to attribute names. Values always reach the database as `?`
replacements of the query wrapper.
"""

from typing import Any, Dict, List, Optional, Sequence, Type

from tipline.database import Database
from tipline.logging_config import get_logger


logger = get_logger('tipline.records')


def _where(values: Optional[Dict[str, Any]]):
    """`a = ? AND b = ?` and its replacements for {column: value}."""
    if not values:
        return '', None
    clause = ' AND '.join(f"`{column}` = ?" for column in values)
    return clause, list(values.values())


class Table:
    """
    Base class of all records.

    Example:
        class Target(Table):
            table_name = 'targets'
            columns = {'id': 'id', 'fname': 'first_name'}

        target = Target(db)
        if target.load({'id': 3}):
            print(target.first_name)
    """

    table_name: str = ''
    primary_key: str = 'id'
    columns: Dict[str, str] = {}

    def __init__(self, db: Database, **values):
        self.db = db
        self.new = True
        for attribute in self.columns.values():
            setattr(self, attribute, None)
        for attribute, value in values.items():
            setattr(self, attribute, value)

    @property
    def primary_attribute(self) -> str:
        return self.columns.get(self.primary_key, self.primary_key)

    def populate(self, row: Dict[str, Any]) -> None:
        """Copy the mapped columns present in `row` onto this record."""
        for column, attribute in self.columns.items():
            if column in row:
                setattr(self, attribute, row[column])
        self.new = False

    def to_dict(self) -> Dict[str, Any]:
        return {column: getattr(self, attribute) for column, attribute in self.columns.items()}

    def load(self, values: Optional[Dict[str, Any]] = None, lazy: bool = False) -> bool:
        """
        Load the first row matching every `column = value` pair.

        Args:
            values: Conditions, {column: value}; the first row of the table when empty
            lazy: Skip load_all(), which subclasses use to load related records

        Returns:
            True if a row was found
        """
        where, replacements = _where(values)
        resource = self.db.select('*', self.table_name, where=where, limit='1', replacements=replacements)
        if not resource:
            return False

        row = self.db.fetch_assoc(resource)
        if row is None:
            return False

        self.populate(row)
        if not lazy:
            self.load_all()
        return True

    def load_all(self) -> None:
        """Hook for loading related records."""
        pass

    def save(self):
        """
        Insert a new record or update an existing one.

        Returns:
            The generated id for new records, True/False for updates
        """
        key_attribute = self.primary_attribute

        if self.new:
            values = {
                column: getattr(self, attribute)
                for column, attribute in self.columns.items()
                if column != self.primary_key and getattr(self, attribute) is not None
            }
            if not self.db.insert(self.table_name, values):
                return False

            insert_id = self.db.insert_id()
            if insert_id and getattr(self, key_attribute) is None:
                setattr(self, key_attribute, insert_id)
            self.new = False
            logger.debug(f"Inserted into {self.table_name}, id {insert_id}")
            return insert_id

        values = {
            column: getattr(self, attribute)
            for column, attribute in self.columns.items()
            if column != self.primary_key
        }
        return self.db.update(self.table_name, values, f"`{self.primary_key}` = ?",
                              [getattr(self, key_attribute)])

    def remove(self) -> bool:
        """Delete this record by primary key."""
        if not self.primary_key:
            return False
        return self.db.delete(self.table_name, f"`{self.primary_key}` = ?",
                              [getattr(self, self.primary_attribute)])

    def __repr__(self):
        return f"<{type(self).__name__} {self.primary_key}={getattr(self, self.primary_attribute, None)!r}>"


def class_list(db: Database, table: str, columns: Sequence[str],
               values: Optional[Dict[str, Any]], cls: Type[Table]) -> List[Table]:
    """
    Records of `cls` for every row of `table` matching `values`.

    Args:
        columns: Columns to select; the records are populated from them
        values: Conditions, {column: value}
    """
    where, replacements = _where(values)
    resource = db.select(', '.join(f"`{column}`" for column in columns), table,
                         where=where, replacements=replacements)
    if not resource:
        return []

    result = []
    for row in db.fetch_assoc_all(resource=resource) or []:
        record = cls(db)
        record.populate(row)
        result.append(record)
    return result


def table_add(db: Database, table: str, values: Dict[str, Any]) -> bool:
    """Insert a raw row into `table`."""
    return db.insert(table, values)
