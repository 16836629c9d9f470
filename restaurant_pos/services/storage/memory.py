"""
In-Memory Store Implementation

Process-local implementation of BaseStore used in development mode
(ENV_MODE=development) and by the test-suite:
    - Run the full menu → cart → checkout flow without a database
    - Seeded with the demo menu below and one open cash session
    - Optional simulated latency and forced failures per operation

The cash-session add runs under a lock so concurrent settlements on the
same session never lose an update.
"""

import asyncio
import logging
import random
import threading
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from restaurant_pos.services.catalog import Category, Item, Variant
from restaurant_pos.services.storage.base import (
    BaseStore,
    CashSessionNotFound,
    CashSessionSnapshot,
    OrderRecord,
    StorageError,
    StoredOrder,
)

logger = logging.getLogger(__name__)


DEMO_CATEGORIES = (
    Category(id=1, name="SANGUCHES", sort_order=1),
    Category(id=2, name="PLATOS", sort_order=2),
    Category(id=3, name="BEBIDAS", sort_order=3),
    Category(id=4, name="EXTRAS", sort_order=4),
)

DEMO_MENU = (
    Item(
        id="sanguche-chancho",
        name="Sanguche de Chancho",
        price=Decimal("14.00"),
        category="SANGUCHES",
        is_popular=True,
        description="Chancho al horno con zarza criolla en pan francés.",
    ),
    Item(
        id="sanguche-pavo",
        name="Sanguche de Pavo",
        price=Decimal("13.00"),
        category="SANGUCHES",
    ),
    Item(
        id="seco-chabelo",
        name="Seco de Chabelo",
        price=Decimal("22.00"),
        category="PLATOS",
        is_popular=True,
        variants=(
            Variant(id="personal", name="Personal", price=Decimal("22.00")),
            Variant(id="familiar", name="Familiar", price=Decimal("38.00")),
        ),
    ),
    Item(
        id="chifles",
        name="Chifles Piuranos",
        price=Decimal("6.00"),
        category="EXTRAS",
        variants=(
            Variant(id="chico", name="Chico", price=Decimal("6.00")),
            Variant(id="grande", name="Grande", price=Decimal("10.00")),
        ),
    ),
    Item(
        id="chicha-morada",
        name="Chicha Morada",
        price=Decimal("5.00"),
        category="BEBIDAS",
        variants=(
            Variant(id="vaso", name="Vaso", price=Decimal("5.00")),
            Variant(id="jarra", name="Jarra 1L", price=Decimal("15.00")),
        ),
    ),
    Item(
        id="inca-kola",
        name="Inca Kola 500ml",
        price=Decimal("4.00"),
        category="BEBIDAS",
    ),
)


class InMemoryStore(BaseStore):
    """
    Dictionary-backed store.

    Attributes:
        failing_operations: Operation names that raise StorageError
            (e.g. {"insert_order"}), for exercising failure paths
        min_latency: Minimum simulated latency in seconds
        max_latency: Maximum simulated latency in seconds
    """

    def __init__(
        self,
        items: Iterable[Item] = (),
        categories: Iterable[Category] = (),
        failing_operations: Iterable[str] = (),
        min_latency: float = 0.0,
        max_latency: float = 0.0,
    ):
        self._items: dict[str, Item] = {item.id: item for item in items}
        self._categories: list[Category] = list(categories)
        self._orders: dict[int, StoredOrder] = {}
        self._sessions: dict[int, CashSessionSnapshot] = {}
        self._lock = threading.Lock()
        self._next_order_id = 1
        self._next_session_id = 1

        self.failing_operations = set(failing_operations)
        self.min_latency = min_latency
        self.max_latency = max_latency

        logger.info(
            f"InMemoryStore initialized "
            f"(items={len(self._items)}, categories={len(self._categories)})"
        )

    @classmethod
    def with_demo_data(cls, **kwargs) -> "InMemoryStore":
        """Store seeded with the demo menu and one open cash session."""
        store = cls(items=DEMO_MENU, categories=DEMO_CATEGORIES, **kwargs)
        store.add_cash_session("Caja Principal")
        return store

    @property
    def provider_name(self) -> str:
        return "memory"

    async def _simulate_latency(self) -> None:
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _check_failure(self, operation: str) -> None:
        if operation in self.failing_operations:
            logger.debug(f"Memory: simulated failure in {operation}")
            raise StorageError(f"Simulated failure in {operation}")

    # =========================================================================
    # SEEDING
    # =========================================================================

    def add_cash_session(self, user_name: str, total_sales: Decimal = Decimal("0")) -> CashSessionSnapshot:
        """Register an open session. Opening shifts is owned by the back-office."""
        with self._lock:
            session = CashSessionSnapshot(
                id=self._next_session_id,
                user_name=user_name,
                total_sales=Decimal(total_sales),
                opened_at=datetime.now(timezone.utc),
            )
            self._sessions[session.id] = session
            self._next_session_id += 1
        return session

    # =========================================================================
    # CATALOG
    # =========================================================================

    async def list_items(self) -> list[Item]:
        self._check_failure("list_items")
        return list(self._items.values())

    async def list_categories(self) -> list[Category]:
        return sorted(self._categories, key=lambda c: c.sort_order)

    async def save_item(self, item: Item) -> Item:
        self._check_failure("save_item")
        self._items[item.id] = item
        logger.info(f"Memory: saved item {item.id} ({item.name})")
        return item

    async def delete_item(self, item_id: str) -> bool:
        self._check_failure("delete_item")
        return self._items.pop(item_id, None) is not None

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def insert_order(self, record: OrderRecord) -> StoredOrder:
        await self._simulate_latency()
        self._check_failure("insert_order")

        with self._lock:
            order = StoredOrder(
                id=self._next_order_id,
                created_at=datetime.now(timezone.utc),
                record=record,
            )
            self._orders[order.id] = order
            self._next_order_id += 1

        logger.debug(f"Memory: inserted order #{order.id}")
        return order

    async def get_order(self, order_id: int) -> Optional[StoredOrder]:
        return self._orders.get(order_id)

    async def list_orders(
        self,
        skip: int = 0,
        limit: int = 50,
        origin: Optional[str] = None,
    ) -> list[StoredOrder]:
        orders = sorted(self._orders.values(), key=lambda o: o.id, reverse=True)
        if origin:
            orders = [o for o in orders if o.record.order_origin == origin]
        return orders[skip:skip + limit]

    # =========================================================================
    # CASH SESSIONS
    # =========================================================================

    async def get_cash_session(self, session_id: int) -> Optional[CashSessionSnapshot]:
        return self._sessions.get(session_id)

    async def increment_session_sales(self, session_id: int, amount: Decimal) -> Decimal:
        await self._simulate_latency()
        self._check_failure("increment_session_sales")

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise CashSessionNotFound(session_id)
            updated = replace(session, total_sales=session.total_sales + amount)
            self._sessions[session_id] = updated

        logger.debug(f"Memory: session #{session_id} total_sales={updated.total_sales}")
        return updated.total_sales

    async def health_check(self) -> bool:
        return True
