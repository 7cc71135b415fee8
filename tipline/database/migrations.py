"""
Database Module for Tipline - Schema Migrations
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Applies numbered SQL files (`001_create_tables.sql`, ...) in order and
remembers the last applied version in `schema_migrations`.

:copyright: (c) 2024-present tipline
"""

import os
from pathlib import Path
from typing import List, Optional, Tuple

from tipline.logging_config import get_logger, log_function_call
from .base import DatabaseError
from .database import Database


DEFAULT_MIGRATIONS_DIR = str(Path(__file__).resolve().parent.parent / 'schema')
logger = get_logger('tipline.database.migrations')


class MigrationManager:
    """Handles database schema migrations."""

    def __init__(self, db: Database, migrations_dir: Optional[str] = None):
        self.db = db
        self.migrations_dir = migrations_dir or DEFAULT_MIGRATIONS_DIR
        self.logger = db.logger

    def get_current_version(self) -> int:
        """Get the current database version, creating the bookkeeping table if needed."""
        if not self.db.table_exists('schema_migrations'):
            self.db.query("""
                CREATE TABLE schema_migrations (
                    version INT PRIMARY KEY,
                    applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)
            return 0

        version = self.db.dmax('version', 'schema_migrations')
        return int(version) if version not in (None, False) else 0

    def run_migrations(self) -> bool:
        """Run all pending migrations."""
        try:
            return self._run_pending()
        except DatabaseError as e:
            self.logger.error(f"Migration failed: {e}", exc_info=True)
            return False

    @log_function_call(logger)
    def _run_pending(self) -> bool:
        current_version = self.get_current_version()
        pending_migrations = [
            (version, filename) for version, filename in self._get_migration_files()
            if version > current_version
        ]

        if not pending_migrations:
            self.logger.info("No pending migrations")
            return True

        for version, filename in pending_migrations:
            self.logger.info(f"Running migration {version}: {filename}")

            if not self.db.parse_file(os.path.join(self.migrations_dir, filename)):
                self.logger.error(f"Migration {version} did not complete")
                return False

            if not self.db.insert('schema_migrations', {'version': version}):
                self.logger.error(f"Migration {version} ran but could not be recorded")
                return False
            self.logger.info(f"Completed migration {version}")

        return True

    def _get_migration_files(self) -> List[Tuple[int, str]]:
        """Get list of migration files sorted by version."""
        migrations = []

        if not os.path.exists(self.migrations_dir):
            self.logger.warning(f"Migrations directory not found: {self.migrations_dir}")
            return migrations

        for filename in os.listdir(self.migrations_dir):
            if filename.endswith('.sql'):
                try:
                    version = int(filename.split('_')[0].split('.')[0])
                    migrations.append((version, filename))
                except ValueError:
                    self.logger.warning(f"Invalid migration filename: {filename}")

        return sorted(migrations)
