"""
Configuration for Tipline.

Environment variables are read here and nowhere else. A `.env` file is
loaded first when present.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name, default)
    if value is None:
        return None
    value = value.strip()
    return value if value else default


def _getbool(name: str, default: bool) -> bool:
    value = _getenv(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes', 'on')


def _getint(name: str, default: int) -> int:
    value = _getenv(name)
    return int(value) if value is not None else default


@dataclass(frozen=True)
class Settings:
    # Database credentials
    db_host: Optional[str]
    db_port: int
    db_user: Optional[str]
    db_password: Optional[str]
    db_database: Optional[str]

    # Query wrapper behaviour
    cache_path: str = 'cache'
    debug: bool = False
    debugger_ips: List[str] = field(default_factory=list)
    halt_on_errors: bool = True
    max_query_time: float = 10
    console_show_records: int = 20
    minimize_console: bool = True
    log_path: str = ''
    language: str = 'english'

    # Slow query notifications
    slow_query_webhook_url: Optional[str] = None
    notifier_domain: str = ''

    # Web server
    web_host: str = '0.0.0.0'
    web_port: int = 8080

    @property
    def conn_params(self) -> Dict[str, Any]:
        """Connection parameters in the shape the driver expects."""
        return {
            'host': self.db_host,
            'port': self.db_port,
            'user': self.db_user,
            'password': self.db_password,
            'database': self.db_database,
        }


def get_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build the settings from the environment.

    Args:
        env_file: Optional path of a dotenv file to load instead of `.env`

    Returns:
        Frozen Settings instance
    """
    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    debugger_ips = _getenv('DB_DEBUGGER_IPS', '') or ''

    return Settings(
        db_host=_getenv('DB_HOST'),
        db_port=_getint('DB_PORT', 3306),
        db_user=_getenv('DB_USER'),
        db_password=_getenv('DB_PASS'),
        db_database=_getenv('DB_DATABASE'),
        cache_path=_getenv('DB_CACHE_PATH', 'cache'),
        debug=_getbool('DB_DEBUG', False),
        debugger_ips=[ip.strip() for ip in debugger_ips.split(',') if ip.strip()],
        halt_on_errors=_getbool('DB_HALT_ON_ERRORS', True),
        max_query_time=float(_getenv('DB_MAX_QUERY_TIME', '10')),
        console_show_records=_getint('DB_CONSOLE_RECORDS', 20),
        minimize_console=_getbool('DB_MINIMIZE_CONSOLE', True),
        log_path=_getenv('DB_LOG_PATH', '') or '',
        language=_getenv('DB_LANGUAGE', 'english'),
        slow_query_webhook_url=_getenv('SLOW_QUERY_WEBHOOK_URL'),
        notifier_domain=_getenv('NOTIFIER_DOMAIN', '') or '',
        web_host=_getenv('WEB_HOST', '0.0.0.0'),
        web_port=_getint('WEB_PORT', 8080),
    )
