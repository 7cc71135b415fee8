"""
Row resources returned by Database.query().

A resource hands out rows one at a time and can be rewound with seek().
CursorResource reads from a live buffered cursor; CachedResource walks a
list of rows read back from the result cache.
"""

from typing import Any, Callable, Dict, List, Optional


# Names of the first seven DB-API description fields
DESCRIPTION_FIELDS = (
    'name', 'type_code', 'display_size', 'internal_size', 'precision', 'scale', 'null_ok'
)


def describe_columns(description) -> Dict[str, Dict[str, Any]]:
    """Turn a cursor description into {column name: column info}."""
    columns = {}
    for entry in description or ():
        info = dict(zip(DESCRIPTION_FIELDS, entry))
        columns[info['name']] = info
    return columns


class RowResource:
    """Common interface of query results."""

    from_cache = False

    def fetch(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def seek(self, row: int) -> bool:
        raise NotImplementedError

    def columns(self) -> Dict[str, Dict[str, Any]]:
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError

    def __bool__(self) -> bool:
        # An empty result set is still a valid resource
        return True

    def __iter__(self):
        while True:
            row = self.fetch()
            if row is None:
                return
            yield row


class CursorResource(RowResource):
    """Result set still held by a buffered driver cursor."""

    def __init__(self, cursor, driver_error=Exception, on_error: Optional[Callable[[Exception], None]] = None):
        """
        Args:
            cursor: Buffered dictionary cursor holding the result set
            driver_error: Exception class raised by the driver
            on_error: Called with the driver error when a fetch fails
        """
        self.cursor = cursor
        self._driver_error = driver_error
        self._on_error = on_error

    def fetch(self) -> Optional[Dict[str, Any]]:
        try:
            row = self.cursor.fetchone()
        except self._driver_error as e:
            if self._on_error is not None:
                self._on_error(e)
            return None
        return dict(row) if row is not None else None

    def seek(self, row: int) -> bool:
        if row < 0 or row >= len(self):
            return False
        try:
            self.cursor.scroll(row, mode='absolute')
        except self._driver_error:
            return False
        return True

    def columns(self) -> Dict[str, Dict[str, Any]]:
        return describe_columns(self.cursor.description)

    def __len__(self) -> int:
        return max(self.cursor.rowcount or 0, 0)

    def close(self) -> None:
        self.cursor.close()


class CachedResource(RowResource):
    """Result set deserialized from the cache."""

    from_cache = True

    def __init__(self, rows: List[Dict[str, Any]], column_info: Optional[Dict[str, Any]] = None):
        self.rows = rows
        self.column_info = column_info or {}
        self.position = 0

    def fetch(self) -> Optional[Dict[str, Any]]:
        if self.position >= len(self.rows):
            return None
        row = self.rows[self.position]
        self.position += 1
        return dict(row)

    def seek(self, row: int) -> bool:
        # Rewinding an empty cached set is not an error
        if row == 0 or 0 <= row < len(self.rows):
            self.position = row
            return True
        return False

    def columns(self) -> Dict[str, Dict[str, Any]]:
        return self.column_info

    def __len__(self) -> int:
        return len(self.rows)
