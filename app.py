if __name__ != '__main__':
    raise ImportError('This is not a module. Please run app.py instead.')

import asyncio
import sys

from dotenv import load_dotenv

from tipline import __version__
from tipline.config import get_settings
from tipline.database import Database, DatabaseError, MigrationManager
from tipline.logging_config import get_logger


load_dotenv()

# Initialize centralized logging
logger = get_logger('tipline.main')


def main():
    logger.info(f'Starting Tipline v{__version__}...')

    settings = get_settings()
    try:
        db = Database.from_settings(settings)
    except (KeyError, DatabaseError) as e:
        logger.critical(f'Database configuration failed: {e}')
        sys.exit(1)

    migrations = MigrationManager(db)
    if not migrations.run_migrations():
        logger.critical('Database migrations failed, refusing to start')
        db.close()
        sys.exit(1)

    from web.web_server import app as web_app, set_shared_database
    set_shared_database(db)

    logger.info(f'Web server will start on {settings.web_host}:{settings.web_port}')
    try:
        asyncio.run(web_app.run_task(host=settings.web_host, port=settings.web_port))
    except KeyboardInterrupt:
        logger.info('Tipline stopped by user')
    finally:
        db.close()


main()
