"""
Mock Messaging Service

Builds the wa.me links for development. Nothing is sent, the message is
only logged.
"""

import asyncio
import logging
import random
import uuid
from collections import deque
from typing import Optional

from restaurant_pos.core.config import get_settings
from restaurant_pos.services.messaging.base import BaseMessagingService, MessageResult
from restaurant_pos.services.receipts import build_whatsapp_link

logger = logging.getLogger(__name__)


class MockMessagingService(BaseMessagingService):
    """Mock messaging service for development and tests."""

    def __init__(self, failure_rate: float = 0.0, max_latency: float = 0.0, history_size: int = 50):
        self.failure_rate = failure_rate
        self.max_latency = max_latency
        # Most recent successful sends only
        self.sent: deque[MessageResult] = deque(maxlen=history_size)
        logger.info(f"MockMessagingService initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> None:
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(0, self.max_latency))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def _send(self, text: str, number: Optional[str], kind: str) -> MessageResult:
        await self._simulate_latency()

        if self._should_fail():
            logger.warning(f"Mock {kind} failed (simulated)")
            return MessageResult(
                success=False,
                error_message=f"Simulated {kind} failure",
                provider="mock",
            )

        result = MessageResult(
            success=True,
            link_url=build_whatsapp_link(text, number),
            message_id=f"wa_mock_{uuid.uuid4().hex[:12]}",
            provider="mock",
        )
        self.sent.append(result)
        logger.info(f"Mock {kind} to {number or 'chat picker'}: {text[:50]!r}... (ID: {result.message_id})")
        return result

    async def deliver_order_message(
        self,
        text: str,
        to_number: Optional[str] = None,
    ) -> MessageResult:
        return await self._send(text, to_number or get_settings().whatsapp_number, "order message")

    async def share_receipt(
        self,
        text: str,
        to_phone: Optional[str] = None,
    ) -> MessageResult:
        return await self._send(text, to_phone, "receipt share")

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True
