from decimal import Decimal

import pytest

from restaurant_pos.models import PaymentMethod
from restaurant_pos.services.catalog import ALL_CATEGORIES, VariantSelectionRequired
from restaurant_pos.services.sessions import (
    PosTerminal,
    SessionNotFound,
    SessionRegistry,
    ShoppingSession,
)
from restaurant_pos.services.storage import CashSessionNotFound


def test_shopping_session_goes_through_variant_gate(catalog):
    session = ShoppingSession(catalog=catalog)

    with pytest.raises(VariantSelectionRequired):
        session.add("it-2")
    assert session.cart.is_empty

    session.add("it-2", "L")
    assert session.cart.total() == Decimal("12.00")


def test_shopping_cart_floors_at_one(catalog):
    session = ShoppingSession(catalog=catalog)
    session.add("it-1")

    session.update_quantity("it-1", None, -1)

    assert session.cart.find("it-1").quantity == 1


def test_selecting_category_clears_suggestions(catalog):
    session = ShoppingSession(catalog=catalog)
    session.set_suggestions(["it-1"])
    assert [i.id for i in session.visible_items()] == ["it-1"]

    session.select_category("BEBIDAS")

    assert session.suggested_ids == ()
    assert [i.id for i in session.visible_items()] == ["it-3"]

    session.select_category(None)
    assert session.category == ALL_CATEGORIES


def test_terminal_removes_at_zero(catalog):
    terminal = PosTerminal(catalog=catalog, cash_session_id=1, cashier="Caja")
    terminal.add("it-1")

    terminal.update_quantity("it-1", None, -1)

    assert terminal.cart.is_empty


def test_terminal_checkout_state(catalog):
    terminal = PosTerminal(catalog=catalog, cash_session_id=1, cashier="Caja")
    assert not terminal.can_checkout

    terminal.add("it-1")
    terminal.add("it-3")
    assert terminal.change_due == Decimal("0")
    assert terminal.can_checkout

    terminal.received_amount = "20"
    assert terminal.change_due == Decimal("5.00")

    terminal.received_amount = "10"
    assert terminal.change_due is None
    assert not terminal.can_checkout

    terminal.received_amount = "diez"
    assert not terminal.can_checkout

    terminal.payment_method = PaymentMethod.PLIN
    assert terminal.change_due == Decimal("0")
    assert terminal.can_checkout


async def test_terminal_checkout_resets_tender(catalog, engine, cash_session):
    terminal = PosTerminal(catalog=catalog, cash_session_id=cash_session.id, cashier="Caja Test")
    terminal.add("it-1")
    terminal.received_amount = "20"

    result = await terminal.checkout(engine)

    assert result.success
    assert result.change == Decimal("10.00")
    assert terminal.received_amount == ""
    assert terminal.cart.is_empty


async def test_shopping_checkout_uses_form_fields(catalog, engine):
    session = ShoppingSession(catalog=catalog, customer_name="Rosa", customer_phone="987")
    session.add("it-3")

    result = await session.checkout(engine)

    assert result.success
    assert result.order.record.customer_name == "Rosa"


async def test_registry_handles(store, cash_session):
    registry = SessionRegistry()

    web_handle, shopping = await registry.open_shopping(store)
    pos_handle, terminal = await registry.open_terminal(store, cash_session.id)

    assert registry.get_shopping(web_handle) is shopping
    assert registry.get_terminal(pos_handle) is terminal
    assert terminal.cashier == "Caja Test"
    assert len(shopping.catalog.items) == 3

    with pytest.raises(SessionNotFound):
        registry.get_terminal(web_handle)
    with pytest.raises(SessionNotFound):
        registry.get_shopping("nope")

    assert registry.close(web_handle) is True
    assert registry.close(web_handle) is False
    assert len(registry) == 1


async def test_registry_rejects_unknown_cash_session(store):
    with pytest.raises(CashSessionNotFound):
        await SessionRegistry().open_terminal(store, 42)


async def test_sessions_keep_their_catalog_snapshot(store):
    registry = SessionRegistry()
    _, session = await registry.open_shopping(store)

    await store.delete_item("it-1")

    assert session.add("it-1").unit_price == Decimal("10.00")


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


async def test_idle_sessions_are_pruned_on_open(store, cash_session):
    clock = FakeClock()
    registry = SessionRegistry(idle_timeout=60, clock=clock)
    idle, _ = await registry.open_shopping(store)
    busy, _ = await registry.open_terminal(store, cash_session.id)

    clock.now = 50
    registry.get_terminal(busy)
    clock.now = 100
    fresh, _ = await registry.open_shopping(store)

    assert len(registry) == 2
    with pytest.raises(SessionNotFound):
        registry.get_shopping(idle)
    assert registry.get_terminal(busy).cashier == "Caja Test"
    assert registry.get_shopping(fresh)


async def test_registry_without_timeout_never_prunes(store):
    clock = FakeClock()
    registry = SessionRegistry(clock=clock)
    await registry.open_shopping(store)

    clock.now = 10 ** 9

    assert registry.prune() == 0
    assert len(registry) == 1
