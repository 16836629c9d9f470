"""
Cart Ledger

One Cart per in-progress order. Lines are unique by
``(item.id, variant.id or None)``; quantities are positive integers.

The customer flow and the POS flow disagree on what a decrement past one
means, so each Cart is built with an explicit MinQuantityPolicy:
    - FLOOR_AT_ONE: the quantity stops at 1 (customer cart)
    - REMOVE_AT_ZERO: the line disappears once it reaches 0 (POS ticket)
"""

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from restaurant_pos.services.catalog import Item, Selection, Variant

MergeKey = tuple[str, Optional[str]]


class MinQuantityPolicy(str, enum.Enum):
    FLOOR_AT_ONE = "floor_at_one"
    REMOVE_AT_ZERO = "remove_at_zero"


@dataclass
class CartLine:
    item: Item
    quantity: int = 1
    variant: Optional[Variant] = None

    @property
    def key(self) -> MergeKey:
        return line_key(self.item.id, self.variant.id if self.variant else None)

    @property
    def unit_price(self) -> Decimal:
        """Variant price when one is selected, base price otherwise."""
        return self.variant.price if self.variant is not None else self.item.price

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


def line_key(item_id: str, variant_id: Optional[str] = None) -> MergeKey:
    return (item_id, variant_id or None)


class Cart:
    """
    Quantity-bearing selections for a single order.

    ``add`` trusts its caller: the variant is not checked against
    ``item.variants``. Run catalog.resolve_selection() first.
    """

    def __init__(self, policy: MinQuantityPolicy = MinQuantityPolicy.FLOOR_AT_ONE):
        self.policy = MinQuantityPolicy(policy)
        self._lines: dict[MergeKey, CartLine] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(self.lines)

    def __repr__(self):
        return f"<Cart {self.policy.value} lines={len(self)} items={self.item_count()}>"

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines.values())

    @property
    def line_count(self) -> int:
        return len(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def find(self, item_id: str, variant_id: Optional[str] = None) -> Optional[CartLine]:
        return self._lines.get(line_key(item_id, variant_id))

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add(self, item: Item, variant: Optional[Variant] = None) -> CartLine:
        """Add one unit, merging into an existing line with the same key."""
        key = line_key(item.id, variant.id if variant else None)
        line = self._lines.get(key)
        if line is not None:
            line.quantity += 1
            return line
        line = CartLine(item=item, quantity=1, variant=variant)
        self._lines[key] = line
        return line

    def add_selection(self, selection: Selection) -> CartLine:
        return self.add(selection.item, selection.variant)

    def update_quantity(
        self,
        item_id: str,
        variant_id: Optional[str],
        delta: int,
    ) -> Optional[CartLine]:
        """
        Shift a line's quantity by ``delta``.

        Returns the line, or None when no line matches or the line was
        dropped under REMOVE_AT_ZERO.
        """
        key = line_key(item_id, variant_id)
        line = self._lines.get(key)
        if line is None:
            return None

        quantity = line.quantity + int(delta)
        if self.policy is MinQuantityPolicy.REMOVE_AT_ZERO:
            if quantity <= 0:
                del self._lines[key]
                return None
            line.quantity = quantity
        else:
            line.quantity = max(1, quantity)
        return line

    def remove(self, item_id: str, variant_id: Optional[str] = None) -> bool:
        return self._lines.pop(line_key(item_id, variant_id), None) is not None

    def clear(self) -> None:
        self._lines.clear()

    # =========================================================================
    # TOTALS
    # =========================================================================

    def total(self) -> Decimal:
        """Exact sum of line subtotals. Rounding is a display concern."""
        return sum((line.subtotal for line in self._lines.values()), Decimal("0"))

    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())
