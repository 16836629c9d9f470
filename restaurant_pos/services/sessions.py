"""
Session State

Each shopping context owns its own state object instead of sharing
process-wide globals:
    - ShoppingSession: one customer browsing the menu and checking out
    - PosTerminal: one cashier screen bound to an open cash session

Both take a Catalog snapshot when they open and price every line from it.
The HTTP layer addresses them through opaque handles issued by
SessionRegistry.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Iterable, Optional, Union

from restaurant_pos.models import Modality, PaymentMethod
from restaurant_pos.services.cart import Cart, CartLine, MinQuantityPolicy
from restaurant_pos.services.catalog import ALL_CATEGORIES, Catalog, Item
from restaurant_pos.services.settlement import (
    CheckoutResult,
    SaleResult,
    SettlementEngine,
    compute_change,
    validate_tender,
)
from restaurant_pos.services.storage import BaseStore, CashSessionNotFound

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    def __init__(self, handle: str):
        super().__init__(handle)
        self.handle = handle

    def __str__(self):
        return f"No open session with handle {self.handle!r}"


@dataclass
class ShoppingSession:
    """Customer-side state: cart, filters and checkout form."""
    catalog: Catalog
    cart: Cart = field(default_factory=lambda: Cart(MinQuantityPolicy.FLOOR_AT_ONE))
    category: str = ALL_CATEGORIES
    search: str = ""
    suggested_ids: tuple[str, ...] = ()
    modality: Modality = Modality.PICKUP
    customer_name: str = ""
    customer_phone: str = ""
    address: str = ""

    def add(self, item_id: str, variant_id: Optional[str] = None) -> CartLine:
        """Add one unit; raises VariantSelectionRequired for unresolved variants."""
        return self.cart.add_selection(self.catalog.select(item_id, variant_id))

    def update_quantity(self, item_id: str, variant_id: Optional[str], delta: int) -> Optional[CartLine]:
        return self.cart.update_quantity(item_id, variant_id, delta)

    def remove(self, item_id: str, variant_id: Optional[str] = None) -> bool:
        return self.cart.remove(item_id, variant_id)

    def select_category(self, category: Optional[str]) -> None:
        # Browsing by category drops the assistant's picks
        self.category = category or ALL_CATEGORIES
        self.suggested_ids = ()

    def set_suggestions(self, item_ids: Iterable[str]) -> None:
        self.suggested_ids = tuple(item_ids)

    def visible_items(self) -> list[Item]:
        return self.catalog.filter(self.category, self.search, self.suggested_ids)

    async def checkout(self, engine: SettlementEngine) -> CheckoutResult:
        return await engine.checkout_web(
            self.cart,
            customer_name=self.customer_name,
            customer_phone=self.customer_phone,
            modality=self.modality,
            address=self.address,
        )


@dataclass
class PosTerminal:
    """Cashier-side state bound to one cash session."""
    catalog: Catalog
    cash_session_id: int
    cashier: str
    cart: Cart = field(default_factory=lambda: Cart(MinQuantityPolicy.REMOVE_AT_ZERO))
    payment_method: PaymentMethod = PaymentMethod.CASH
    received_amount: str = ""

    def add(self, item_id: str, variant_id: Optional[str] = None) -> CartLine:
        return self.cart.add_selection(self.catalog.select(item_id, variant_id))

    def update_quantity(self, item_id: str, variant_id: Optional[str], delta: int) -> Optional[CartLine]:
        return self.cart.update_quantity(item_id, variant_id, delta)

    def remove(self, item_id: str, variant_id: Optional[str] = None) -> bool:
        return self.cart.remove(item_id, variant_id)

    @property
    def change_due(self) -> Optional[Decimal]:
        """Change for the current ticket, None while the tender is invalid."""
        total = self.cart.total()
        received, issue = validate_tender(total, self.received_amount, self.payment_method)
        if issue:
            return None
        return compute_change(total, received, self.payment_method)

    @property
    def can_checkout(self) -> bool:
        return not self.cart.is_empty and self.change_due is not None

    async def checkout(self, engine: SettlementEngine) -> SaleResult:
        result = await engine.checkout_pos(
            self.cart,
            cash_session_id=self.cash_session_id,
            cashier=self.cashier,
            payment_method=self.payment_method,
            received_amount=self.received_amount,
        )
        if result.success:
            self.received_amount = ""
        return result


Session = Union[ShoppingSession, PosTerminal]


class SessionRegistry:
    """
    In-process map of handle -> session state.

    Sessions untouched for ``idle_timeout`` seconds are dropped the next
    time a session is opened. None keeps them until closed.
    """

    def __init__(self, idle_timeout: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._last_seen: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def prune(self) -> int:
        """Close idle sessions; returns how many were dropped."""
        if self.idle_timeout is None:
            return 0
        cutoff = self._clock() - self.idle_timeout
        stale = [handle for handle, seen in self._last_seen.items() if seen < cutoff]
        for handle in stale:
            self.close(handle)
        if stale:
            logger.info(f"Pruned {len(stale)} idle session(s)")
        return len(stale)

    def _register(self, session: Session) -> str:
        self.prune()
        handle = uuid.uuid4().hex
        self._sessions[handle] = session
        self._last_seen[handle] = self._clock()
        return handle

    async def open_shopping(self, store: BaseStore) -> tuple[str, ShoppingSession]:
        session = ShoppingSession(catalog=await store.load_catalog())
        handle = self._register(session)
        logger.info(f"Shopping session {handle[:8]} opened ({len(session.catalog.items)} items)")
        return handle, session

    async def open_terminal(self, store: BaseStore, cash_session_id: int) -> tuple[str, PosTerminal]:
        """
        Open a POS terminal on an existing cash session.

        Raises:
            CashSessionNotFound: the session id is unknown
        """
        cash_session = await store.get_cash_session(cash_session_id)
        if cash_session is None:
            raise CashSessionNotFound(cash_session_id)

        terminal = PosTerminal(
            catalog=await store.load_catalog(),
            cash_session_id=cash_session.id,
            cashier=cash_session.user_name,
        )
        handle = self._register(terminal)
        logger.info(f"POS terminal {handle[:8]} opened on cash session #{cash_session.id}")
        return handle, terminal

    def _get(self, handle: str, kind: type) -> Session:
        session = self._sessions.get(handle)
        if not isinstance(session, kind):
            raise SessionNotFound(handle)
        self._last_seen[handle] = self._clock()
        return session

    def get_shopping(self, handle: str) -> ShoppingSession:
        return self._get(handle, ShoppingSession)

    def get_terminal(self, handle: str) -> PosTerminal:
        return self._get(handle, PosTerminal)

    def close(self, handle: str) -> bool:
        self._last_seen.pop(handle, None)
        return self._sessions.pop(handle, None) is not None
