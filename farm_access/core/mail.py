# farm_access/core/mail.py
"""
Outbound mail boundary. Delivery itself is an external collaborator; this module
only defines the interface the core calls and a logging sender for development.
"""
from __future__ import annotations

import logging
from typing import Protocol

from farm_access.core.config import settings

logger = logging.getLogger(__name__)


class MailSender(Protocol):
    async def send_invitation(self, to_email: str, join_url: str, farm_name: str) -> None: ...


class LoggingMailSender:
    """Development sender: writes the invitation to the log instead of delivering it."""

    def __init__(self, from_email: str | None = None):
        self.from_email = from_email or settings.MAIL_FROM

    async def send_invitation(self, to_email: str, join_url: str, farm_name: str) -> None:
        logger.info(
            "[FARM_INVITE] from=%s to=%s farm=%r url=%s",
            self.from_email,
            to_email,
            farm_name,
            join_url,
        )


def build_join_url(token: str) -> str:
    return f"{settings.APP_BASE_URL.rstrip('/')}/invitation/{token}"


async def dispatch_invitation(sender: MailSender, *, to_email: str, token: str, farm_name: str) -> bool:
    """
    Fire-and-forget delivery. The invitation row is already committed; a failed
    send is logged and reported as False, never rolled back.
    """
    try:
        await sender.send_invitation(to_email, build_join_url(token), farm_name)
    except Exception:
        logger.exception("failed to send farm invitation to %s for farm %r", to_email, farm_name)
        return False
    logger.info("sent farm invitation to %s for farm %r", to_email, farm_name)
    return True


def get_mail_sender() -> MailSender:
    """FastAPI dependency; override in tests or wire a real provider here."""
    return LoggingMailSender()
