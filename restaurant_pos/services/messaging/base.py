"""
Messaging Service Abstract Base Class

Defines the interface for handing order summaries and receipts to the
WhatsApp channel. Supports both Mock (development) and Real (production)
implementations.

Delivery is best-effort: callers log a failed MessageResult and move on,
the order it describes is already persisted.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class MessageResult:
    """Result from handing a message to the channel."""
    success: bool
    link_url: Optional[str] = None
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


class BaseMessagingService(ABC):
    """Abstract base class for messaging services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def deliver_order_message(
        self,
        text: str,
        to_number: Optional[str] = None,
    ) -> MessageResult:
        """
        Deliver a web order summary to the store's WhatsApp number.

        Args:
            text: Rendered order message
            to_number: Destination; defaults to settings.whatsapp_number

        Returns:
            MessageResult whose link_url opens the chat with the text
            pre-filled
        """
        pass

    @abstractmethod
    async def share_receipt(
        self,
        text: str,
        to_phone: Optional[str] = None,
    ) -> MessageResult:
        """Share a POS ticket; without a phone the link opens a chat picker."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass
