import os
import tempfile
from decimal import Decimal

import pytest

# Must be set before restaurant_pos reads its settings
_TMP_DIR = tempfile.mkdtemp(prefix="churre-tests-")
os.environ["ENV_MODE"] = "development"
os.environ["EXCEL_EXPORT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'app.db')}"
os.environ["DATA_DIRECTORY"] = os.path.join(_TMP_DIR, "data")

from restaurant_pos.core.config import get_settings  # noqa: E402

get_settings.cache_clear()

from restaurant_pos.services.catalog import Catalog, Category, Item, Variant  # noqa: E402
from restaurant_pos.services.messaging import MockMessagingService  # noqa: E402
from restaurant_pos.services.settlement import SettlementEngine  # noqa: E402
from restaurant_pos.services.storage import InMemoryStore  # noqa: E402

ITEM_A = Item(id="it-1", name="Item A", price=Decimal("10.00"), category="PLATOS")
ITEM_B = Item(
    id="it-2",
    name="Item B",
    price=Decimal("8.00"),
    category="PLATOS",
    variants=(
        Variant(id="S", name="S", price=Decimal("8.00")),
        Variant(id="L", name="L", price=Decimal("12.00")),
    ),
)
ITEM_C = Item(id="it-3", name="Chicha", price=Decimal("5.00"), category="BEBIDAS")

TEST_CATEGORIES = (
    Category(id=1, name="PLATOS", sort_order=1),
    Category(id=2, name="BEBIDAS", sort_order=2),
)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def catalog():
    return Catalog(items=(ITEM_A, ITEM_B, ITEM_C), categories=TEST_CATEGORIES)


@pytest.fixture
def store():
    return InMemoryStore(items=(ITEM_A, ITEM_B, ITEM_C), categories=TEST_CATEGORIES)


@pytest.fixture
def cash_session(store):
    return store.add_cash_session("Caja Test", Decimal("100.00"))


@pytest.fixture
def messaging():
    return MockMessagingService()


@pytest.fixture
def engine(store, messaging, settings):
    return SettlementEngine(store, messaging, settings)
