#!/usr/bin/env python3
"""
Standalone web server runner
Use this to run the web server without applying migrations first
"""

from tipline.config import get_settings
from tipline.logging_config import get_logger
from web.web_server import app


logger = get_logger('tipline.web')


if __name__ == '__main__':
    settings = get_settings()

    logger.info(f"Starting web server on {settings.web_host}:{settings.web_port}")
    app.run(host=settings.web_host, port=settings.web_port, debug=False)
