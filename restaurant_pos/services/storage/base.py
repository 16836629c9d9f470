"""
Storage Service Abstract Base Class

Defines the persistence contract the settlement engine and the HTTP layer
rely on. InMemoryStore (development/tests) and SqlStore (staging/production)
both implement it, so the rest of the application never knows which one is
active.

Required capabilities:
    - insert_order(): persist an order record, returning id + timestamp
    - increment_session_sales(): atomic server-side add on a cash session
    - catalog reads (items, categories) and admin writes (save/delete item)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from restaurant_pos.services.catalog import Catalog, Category, Item, to_decimal


class StorageError(Exception):
    """A persistence call failed (connection, constraint, timeout...)."""


class CashSessionNotFound(StorageError):
    def __init__(self, session_id: int):
        super().__init__(f"Cash session #{session_id} does not exist")
        self.session_id = session_id


@dataclass(frozen=True)
class OrderLineSnapshot:
    """
    Order line frozen at checkout time.

    Holds plain values only (no reference to the catalog item), so later
    price edits never change order history.
    """
    name: str
    quantity: int
    unit_price: Decimal
    variant: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "price": str(self.unit_price),
            "variant": self.variant,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderLineSnapshot":
        return cls(
            name=data["name"],
            quantity=int(data["quantity"]),
            unit_price=to_decimal(data["price"]),
            variant=data.get("variant"),
        )


@dataclass(frozen=True)
class OrderRecord:
    """An order ready to be inserted."""
    customer_name: str
    customer_phone: str
    items: tuple[OrderLineSnapshot, ...]
    total: Decimal
    modality: str
    address: str
    status: str
    order_origin: str
    payment_method: Optional[str] = None
    session_id: Optional[int] = None


@dataclass(frozen=True)
class StoredOrder:
    """An order as returned by the store, with its assigned id and timestamp."""
    id: int
    created_at: datetime
    record: OrderRecord

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "customer_name": self.record.customer_name,
            "customer_phone": self.record.customer_phone,
            "items": [line.to_dict() for line in self.record.items],
            "total": str(self.record.total),
            "modality": self.record.modality,
            "address": self.record.address,
            "status": self.record.status,
            "payment_method": self.record.payment_method,
            "order_origin": self.record.order_origin,
            "session_id": self.record.session_id,
        }


@dataclass(frozen=True)
class CashSessionSnapshot:
    id: int
    user_name: str
    total_sales: Decimal = Decimal("0")
    total_entry: Decimal = Decimal("0")
    total_exit: Decimal = Decimal("0")
    status: str = "open"
    opened_at: Optional[datetime] = field(default=None, compare=False)


class BaseStore(ABC):
    """
    Abstract base class for storage backends.

    Every method may raise StorageError. Implementations must make
    increment_session_sales() a single indivisible add on the store side,
    never a read followed by a client-side write.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Backend name (e.g. "memory", "sql")."""

    # =========================================================================
    # CATALOG
    # =========================================================================

    @abstractmethod
    async def list_items(self) -> list[Item]:
        pass

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        """Categories ordered by sort_order."""

    @abstractmethod
    async def save_item(self, item: Item) -> Item:
        """Insert or replace a menu item by id."""

    @abstractmethod
    async def delete_item(self, item_id: str) -> bool:
        """Delete a menu item. Returns False when it did not exist."""

    async def load_catalog(self) -> Catalog:
        """Read the price list once for a new cart session."""
        items = await self.list_items()
        categories = await self.list_categories()
        return Catalog(items=tuple(items), categories=tuple(categories))

    # =========================================================================
    # ORDERS
    # =========================================================================

    @abstractmethod
    async def insert_order(self, record: OrderRecord) -> StoredOrder:
        pass

    @abstractmethod
    async def get_order(self, order_id: int) -> Optional[StoredOrder]:
        pass

    @abstractmethod
    async def list_orders(
        self,
        skip: int = 0,
        limit: int = 50,
        origin: Optional[str] = None,
    ) -> list[StoredOrder]:
        """Most recent first."""

    # =========================================================================
    # CASH SESSIONS
    # =========================================================================

    @abstractmethod
    async def get_cash_session(self, session_id: int) -> Optional[CashSessionSnapshot]:
        pass

    @abstractmethod
    async def increment_session_sales(self, session_id: int, amount: Decimal) -> Decimal:
        """
        Atomically add ``amount`` to the session's total_sales.

        Returns:
            The session's total_sales after the add

        Raises:
            CashSessionNotFound: no session with that id
        """

    @abstractmethod
    async def health_check(self) -> bool:
        pass
