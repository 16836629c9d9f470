import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from restaurant_pos import models
from restaurant_pos.database import build_engine, init_db
from restaurant_pos.services.catalog import Item, Variant
from restaurant_pos.services.storage import (
    CashSessionNotFound,
    OrderLineSnapshot,
    OrderRecord,
    SqlStore,
)


@pytest.fixture
async def sql_store(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await init_db(engine)
    session_maker = async_sessionmaker(engine, expire_on_commit=False)

    async with session_maker() as session:
        session.add(models.Category(name="PLATOS", sort_order=2))
        session.add(models.Category(name="BEBIDAS", sort_order=1))
        session.add(models.CashSession(user_name="Caja Principal", total_sales=Decimal("100.00")))
        await session.commit()

    yield SqlStore(session_maker)
    await engine.dispose()


def pos_record(total="32.00", session_id=1):
    return OrderRecord(
        customer_name="Venta Local",
        customer_phone="POS",
        items=(
            OrderLineSnapshot(name="Item A", quantity=2, unit_price=Decimal("10.00")),
            OrderLineSnapshot(name="Item B", quantity=1, unit_price=Decimal("12.00"), variant="L"),
        ),
        total=Decimal(total),
        modality="pickup",
        address="Mostrador",
        status="Completado",
        order_origin="Local",
        payment_method="Efectivo",
        session_id=session_id,
    )


async def test_health_check(sql_store):
    assert await sql_store.health_check() is True


async def test_items_round_trip(sql_store):
    item = Item(
        id="seco",
        name="Seco de Chabelo",
        price=Decimal("22.00"),
        category="PLATOS",
        variants=(Variant(id="familiar", name="Familiar", price=Decimal("38.00")),),
        is_popular=True,
    )
    await sql_store.save_item(item)

    catalog = await sql_store.load_catalog()

    stored = catalog.get("seco")
    assert stored.price == Decimal("22.00")
    assert stored.variants[0].price == Decimal("38.00")
    assert stored.is_popular
    assert catalog.category_names == ["BEBIDAS", "PLATOS"]


async def test_save_item_updates_in_place(sql_store):
    await sql_store.save_item(Item(id="x", name="Old", price=Decimal("1.00"), category="PLATOS"))
    await sql_store.save_item(Item(id="x", name="New", price=Decimal("2.50"), category="PLATOS"))

    items = await sql_store.list_items()

    assert [(i.name, i.price) for i in items] == [("New", Decimal("2.50"))]
    assert await sql_store.delete_item("x") is True
    assert await sql_store.delete_item("x") is False


async def test_insert_and_read_order(sql_store):
    stored = await sql_store.insert_order(pos_record())

    assert stored.id == 1
    assert stored.created_at is not None

    loaded = await sql_store.get_order(stored.id)
    assert loaded.record.total == Decimal("32.00")
    assert loaded.record.items == pos_record().items
    assert loaded.record.items[1].variant == "L"
    assert await sql_store.get_order(99) is None


async def test_list_orders_filters_by_origin(sql_store):
    await sql_store.insert_order(pos_record())
    web = OrderRecord(
        customer_name="Rosa",
        customer_phone="987",
        items=(OrderLineSnapshot(name="Chicha", quantity=1, unit_price=Decimal("5.00")),),
        total=Decimal("5.00"),
        modality="pickup",
        address="Tienda Principal",
        status="Pendiente",
        order_origin="Web",
    )
    await sql_store.insert_order(web)

    assert [o.id for o in await sql_store.list_orders()] == [2, 1]
    assert [o.record.order_origin for o in await sql_store.list_orders(origin="Web")] == ["Web"]


async def test_increment_session_sales(sql_store):
    new_total = await sql_store.increment_session_sales(1, Decimal("32.00"))

    assert new_total == Decimal("132.00")
    assert (await sql_store.get_cash_session(1)).total_sales == Decimal("132.00")


async def test_increment_unknown_session(sql_store):
    with pytest.raises(CashSessionNotFound):
        await sql_store.increment_session_sales(42, Decimal("1.00"))


async def test_concurrent_increments_are_not_lost(sql_store):
    await asyncio.gather(
        sql_store.increment_session_sales(1, Decimal("32.00")),
        sql_store.increment_session_sales(1, Decimal("15.00")),
        *[sql_store.increment_session_sales(1, Decimal("1.50")) for _ in range(10)],
    )

    session = await sql_store.get_cash_session(1)
    assert session.total_sales == Decimal("100.00") + Decimal("32.00") + Decimal("15.00") + Decimal("15.00")
