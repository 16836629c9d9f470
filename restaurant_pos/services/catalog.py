"""
Catalog Projection and Menu Filters

Read-only, in-memory view of the price list used by one cart session:
    - Item / Variant value objects (prices as Decimal)
    - Catalog: items + categories loaded once per session
    - resolve_selection(): the variant gate that must run before Cart.add()
    - filter_by_ids / filter_by_category / filter_by_search / filter_menu
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

# Category selector value meaning "every category"
ALL_CATEGORIES = "Todos"


def to_decimal(value: Any) -> Decimal:
    """Convert a stored/JSON price into an exact Decimal."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class Variant:
    """A priced sub-option of an item (e.g. a size)."""
    id: str
    name: str
    price: Decimal

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Variant":
        return cls(id=str(data["id"]), name=data["name"], price=to_decimal(data["price"]))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": str(self.price)}


@dataclass(frozen=True)
class Item:
    """
    A purchasable menu item.

    Attributes:
        id: Item identifier
        name: Display name
        price: Base price, used when no variant is selected
        category: Category name (denormalized)
        variants: Priced options; empty when the base price always applies
        description: Long description for the detail view
        image: Image URL
        is_popular: Highlight flag
    """
    id: str
    name: str
    price: Decimal
    category: str
    variants: tuple[Variant, ...] = ()
    description: str = ""
    image: Optional[str] = None
    is_popular: bool = False

    @property
    def has_variants(self) -> bool:
        return len(self.variants) > 0

    def find_variant(self, variant_id: str) -> Optional[Variant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Item":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            price=to_decimal(data["price"]),
            category=data.get("category") or "",
            variants=tuple(Variant.from_dict(v) for v in (data.get("variants") or [])),
            description=data.get("description") or "",
            image=data.get("image"),
            is_popular=bool(data.get("is_popular", False)),
        )


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    sort_order: int = 0


# =============================================================================
# VARIANT GATE
# =============================================================================

class CatalogError(Exception):
    """Base class for catalog lookups and variant resolution failures."""


class ItemNotFound(CatalogError):
    def __init__(self, item_id: str):
        super().__init__(f"Item {item_id!r} is not on the menu")
        self.item_id = item_id


class VariantSelectionRequired(CatalogError):
    """
    Raised when an item with variants is about to be added without one.
    Carries the options and the default pick for the chooser.
    """

    def __init__(self, item: Item):
        super().__init__(f"Item {item.name!r} requires choosing a variant")
        self.item = item
        self.options = item.variants
        self.default = item.variants[0]


class VariantNotFound(CatalogError):
    def __init__(self, item: Item, variant_id: str):
        super().__init__(f"Variant {variant_id!r} is not offered for {item.name!r}")
        self.item = item
        self.variant_id = variant_id


@dataclass(frozen=True)
class Selection:
    """A committed (item, variant) pair, ready for Cart.add()."""
    item: Item
    variant: Optional[Variant] = None

    @property
    def unit_price(self) -> Decimal:
        return self.variant.price if self.variant is not None else self.item.price


def resolve_selection(item: Item, variant_id: Optional[str] = None) -> Selection:
    """
    Resolve which variant of ``item`` is being bought.

    Items without variants always resolve to the base price. Items with
    variants need an explicit ``variant_id``; there is no silent default.

    Raises:
        VariantSelectionRequired: item has variants and none was chosen
        VariantNotFound: the chosen id is not one of the item's variants
    """
    if not item.has_variants:
        if variant_id:
            raise VariantNotFound(item, variant_id)
        return Selection(item=item)

    if not variant_id:
        raise VariantSelectionRequired(item)

    variant = item.find_variant(variant_id)
    if variant is None:
        raise VariantNotFound(item, variant_id)
    return Selection(item=item, variant=variant)


# =============================================================================
# FILTERS
# =============================================================================

def filter_by_ids(items: Sequence[Item], suggested_ids: Iterable[str]) -> list[Item]:
    """Keep suggested items only; an empty suggestion set disables the filter."""
    wanted = set(suggested_ids or ())
    if not wanted:
        return list(items)
    return [item for item in items if item.id in wanted]


def filter_by_category(items: Sequence[Item], category: Optional[str]) -> list[Item]:
    if not category or category == ALL_CATEGORIES:
        return list(items)
    return [item for item in items if item.category == category]


def filter_by_search(items: Sequence[Item], search: Optional[str]) -> list[Item]:
    needle = (search or "").lower()
    return [item for item in items if needle in (item.name or "").lower()]


def filter_menu(
    items: Sequence[Item],
    category: Optional[str] = None,
    search: Optional[str] = None,
    suggested_ids: Iterable[str] = (),
) -> list[Item]:
    """Apply category, name search and suggestions as AND-ed predicates."""
    result = filter_by_category(items, category)
    result = filter_by_search(result, search)
    return filter_by_ids(result, suggested_ids)


# =============================================================================
# CATALOG
# =============================================================================

@dataclass(frozen=True)
class Catalog:
    """Snapshot of the menu taken when a cart session starts."""
    items: tuple[Item, ...] = ()
    categories: tuple[Category, ...] = ()
    _index: dict[str, Item] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        self._index.update({item.id: item for item in self.items})

    def get(self, item_id: str) -> Item:
        try:
            return self._index[item_id]
        except KeyError:
            raise ItemNotFound(item_id) from None

    def select(self, item_id: str, variant_id: Optional[str] = None) -> Selection:
        return resolve_selection(self.get(item_id), variant_id)

    def filter(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        suggested_ids: Iterable[str] = (),
    ) -> list[Item]:
        return filter_menu(self.items, category, search, suggested_ids)

    @property
    def category_names(self) -> list[str]:
        return [c.name for c in self.categories]
