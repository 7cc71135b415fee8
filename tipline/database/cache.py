"""
File based cache of query results.

One file per statement, named after the MD5 of the final SQL text. A file
is fresh while its modification time plus the requested TTL lies in the
future.
"""

import hashlib
import json
import os
import time
from datetime import date, datetime, time as dt_time, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .resources import CachedResource


def _json_default(value: Any):
    """Serialize the column types MariaDB hands back that json cannot."""
    if isinstance(value, (datetime, date, dt_time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return value.decode('utf-8', errors='replace')
    raise TypeError(f"Object of type {type(value).__name__} is not cacheable")


class ResultCache:
    """Reads and writes cached result sets under `path`."""

    def __init__(self, path: str, logger=None):
        self.path = path
        self.logger = logger

    def usable(self) -> bool:
        """True if the cache directory exists and is writable."""
        return os.path.isdir(self.path) and os.access(self.path, os.W_OK)

    def file_name(self, sql: str) -> str:
        return os.path.join(self.path, hashlib.md5(sql.encode('utf-8')).hexdigest())

    def read(self, sql: str, ttl: float) -> Optional[CachedResource]:
        """
        Return the cached result of `sql` if it is younger than `ttl` seconds.

        Unreadable or corrupt files are treated as a miss.
        """
        file_name = self.file_name(sql)
        if not os.path.exists(file_name):
            return None
        if os.path.getmtime(file_name) + ttl <= time.time():
            return None

        try:
            with open(file_name, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except (OSError, ValueError) as e:
            if self.logger:
                self.logger.warning(f"Ignoring unreadable cache file {file_name}: {e}")
            return None

        resource = CachedResource(payload['rows'], payload.get('column_info'))
        resource.returned_rows = payload.get('returned_rows', len(resource.rows))
        resource.found_rows = payload.get('found_rows', resource.returned_rows)
        return resource

    def write(self, sql: str, rows: List[Dict[str, Any]], returned_rows: int,
              found_rows: int, column_info: Dict[str, Any]) -> str:
        """Store a result set, replacing any previous file for `sql`."""
        file_name = self.file_name(sql)
        payload = {
            'rows': rows,
            'returned_rows': returned_rows,
            'found_rows': found_rows,
            'column_info': column_info,
        }
        tmp_name = file_name + '.tmp'
        with open(tmp_name, 'w', encoding='utf-8') as f:
            json.dump(payload, f, default=_json_default)
        os.replace(tmp_name, file_name)
        return file_name
