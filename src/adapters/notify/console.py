"""
Console notification adapter - Implements NotificationDispatcher protocol.

This module provides a console-based implementation of the domain's
notification port, logging SMS and email messages instead of delivering
them. Real SMS and email transports are deployment-specific.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleNotificationDispatcher:
    """
    Implements NotificationDispatcher protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def send_sms(self, destination: str, text: str) -> None:
        """
        Log a text message (simulates SMS delivery).

        Logged at INFO level to be visible in container logs.
        """
        logger.info("[SMS] To: %s Text: %s", destination, text)

    def send_email(self, destination: str, subject: str, body: str) -> None:
        logger.info("[EMAIL] To: %s Subject: %s Body: %s", destination, subject, body)
