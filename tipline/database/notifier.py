"""
Slow query notifications.

Queries running longer than `max_query_time` are reported to a webhook
when one is configured, and always logged.
"""

from typing import Optional

import requests

from tipline.logging_config import get_logger


class SlowQueryNotifier:
    """Posts slow query alerts to a webhook."""

    def __init__(self, webhook_url: Optional[str] = None, domain: str = '', timeout: float = 5):
        self.webhook_url = webhook_url
        self.domain = domain
        self.timeout = timeout
        self.logger = get_logger('tipline.database.notifier')

    def notify(self, messages: dict, sql: str, seconds: float, limit: float) -> bool:
        """
        Send one alert.

        Returns:
            True if the webhook accepted the alert
        """
        subject = messages['email_subject'] % self.domain
        content = messages['email_content'] % (limit, f"{seconds:.3f}", sql)

        if not self.webhook_url:
            self.logger.debug(f"No slow query webhook configured, not sending: {subject}")
            return False

        payload = {
            'title': subject,
            'description': content,
            'fields': {
                'max_query_time': limit,
                'execution_time': round(seconds, 3),
            },
        }
        try:
            response = requests.post(self.webhook_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.error(f"Failed to send slow query alert: {e}")
            return False

        if response.status_code >= 400:
            self.logger.error(f"Slow query alert rejected with status {response.status_code}")
            return False

        self.logger.info(f"Slow query alert sent ({seconds:.3f}s)")
        return True
