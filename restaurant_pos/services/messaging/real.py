"""
Real Messaging Service

Production implementation on the Twilio WhatsApp API. The wa.me link is
returned alongside the Twilio message id so the client can still open the
chat when the API call fails.
"""

import asyncio
import logging
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

from restaurant_pos.core.config import get_settings
from restaurant_pos.services.messaging.base import BaseMessagingService, MessageResult
from restaurant_pos.services.receipts import build_whatsapp_link

logger = logging.getLogger(__name__)


def _whatsapp_address(number: str) -> str:
    digits = "".join(ch for ch in number if ch.isdigit())
    return f"whatsapp:+{digits}"


class RealMessagingService(BaseMessagingService):
    """Production messaging service using Twilio WhatsApp."""

    def __init__(self):
        settings = get_settings()
        self.store_number = settings.whatsapp_number
        self.account_sid = settings.twilio_account_sid

        if settings.twilio_account_sid and settings.twilio_auth_token:
            self.twilio_client = TwilioClient(
                settings.twilio_account_sid,
                settings.twilio_auth_token,
            )
            self.from_address = _whatsapp_address(settings.twilio_whatsapp_from or "")
        else:
            self.twilio_client = None
            self.from_address = None
            logger.warning("Twilio credentials not configured")

        logger.info("RealMessagingService initialized")

    @property
    def provider_name(self) -> str:
        return "twilio"

    async def _send(self, text: str, number: Optional[str]) -> MessageResult:
        link = build_whatsapp_link(text, number)

        if not number:
            # Nobody to address; the link alone lets the operator pick a chat
            return MessageResult(success=True, link_url=link, provider="twilio")

        if not self.twilio_client:
            return MessageResult(
                success=False,
                link_url=link,
                error_message="Twilio not configured",
                provider="twilio",
            )

        try:
            message = await asyncio.to_thread(
                self.twilio_client.messages.create,
                body=text,
                from_=self.from_address,
                to=_whatsapp_address(number),
            )
        except TwilioException as e:
            logger.error(f"Twilio error: {e}")
            return MessageResult(
                success=False,
                link_url=link,
                error_message=str(e),
                provider="twilio",
            )

        logger.info(f"WhatsApp message sent to {number}: {message.sid}")
        return MessageResult(
            success=True,
            link_url=link,
            message_id=message.sid,
            provider="twilio",
        )

    async def deliver_order_message(
        self,
        text: str,
        to_number: Optional[str] = None,
    ) -> MessageResult:
        return await self._send(text, to_number or self.store_number)

    async def share_receipt(
        self,
        text: str,
        to_phone: Optional[str] = None,
    ) -> MessageResult:
        return await self._send(text, to_phone)

    async def health_check(self) -> bool:
        if not self.twilio_client:
            return False
        try:
            account = self.twilio_client.api.v2010.accounts(self.account_sid)
            await asyncio.to_thread(account.fetch)
            return True
        except TwilioException as e:
            logger.error(f"Twilio health check failed: {e}")
            return False
