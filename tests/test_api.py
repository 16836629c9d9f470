from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from restaurant_pos import main
from restaurant_pos.main import app
from restaurant_pos.services.messaging import MockMessagingService, get_messaging_service
from restaurant_pos.services.storage import InMemoryStore, get_store


@pytest.fixture
def demo_store():
    return InMemoryStore.with_demo_data()


@pytest.fixture
def client(demo_store):
    app.dependency_overrides[get_store] = lambda: demo_store
    app.dependency_overrides[get_messaging_service] = lambda: MockMessagingService()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def open_cart(client):
    response = client.post("/api/web/carts")
    assert response.status_code == 201
    return f"/api/web/carts/{response.json()['handle']}"


def open_terminal(client, cash_session_id=1):
    response = client.post("/api/pos/terminals", json={"cash_session_id": cash_session_id})
    assert response.status_code == 201
    return f"/api/pos/terminals/{response.json()['handle']}"


# =============================================================================
# CATALOG
# =============================================================================

def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["environment"] == "development"


def test_menu_filters(client):
    assert len(client.get("/api/menu").json()) == 6
    assert len(client.get("/api/menu", params={"category": "BEBIDAS"}).json()) == 2
    assert len(client.get("/api/menu", params={"category": "Todos"}).json()) == 6
    assert [i["id"] for i in client.get("/api/menu", params={"search": "SANGUCHE"}).json()] == [
        "sanguche-chancho",
        "sanguche-pavo",
    ]
    suggested = client.get("/api/menu", params={"suggested": ["inca-kola", "chifles"]}).json()
    assert {i["id"] for i in suggested} == {"inca-kola", "chifles"}


def test_menu_prices_are_exact_strings(client):
    seco = next(i for i in client.get("/api/menu").json() if i["id"] == "seco-chabelo")

    assert seco["price"] == "22.00"
    assert [v["price"] for v in seco["variants"]] == ["22.00", "38.00"]


def test_categories_sorted(client):
    names = [c["name"] for c in client.get("/api/categories").json()]

    assert names == ["SANGUCHES", "PLATOS", "BEBIDAS", "EXTRAS"]


# =============================================================================
# ADMIN
# =============================================================================

def test_admin_create_update_delete(client):
    response = client.post("/api/admin/menu", json={"name": "Tamal Verde", "price": "7.50"})
    assert response.status_code == 201
    created = response.json()
    assert created["category"] == "SANGUCHES"
    assert created["price"] == "7.50"

    response = client.put(
        f"/api/admin/menu/{created['id']}",
        json={
            "name": "Tamal Verde",
            "price": "8.00",
            "category": "EXTRAS",
            "variants": [{"name": "Con sarsa", "price": "9.00"}],
        },
    )
    assert response.status_code == 200
    assert response.json()["variants"][0]["id"]

    extras = client.get("/api/menu", params={"category": "EXTRAS"}).json()
    assert created["id"] in [i["id"] for i in extras]

    assert client.delete(f"/api/admin/menu/{created['id']}").status_code == 200
    assert client.delete(f"/api/admin/menu/{created['id']}").status_code == 404


def test_admin_validation(client):
    assert client.post("/api/admin/menu", json={"name": "Gratis", "price": "0"}).status_code == 422
    assert client.post("/api/admin/menu", json={"name": "   ", "price": "5"}).status_code == 422
    assert client.put("/api/admin/menu/nope", json={"name": "X", "price": "5"}).status_code == 404

    assert client.post("/api/admin/menu", json={"name": "x" * 121, "price": "5"}).status_code == 422
    assert client.post("/api/admin/menu", json={"name": "Tamal", "price": "5", "category": "C" * 61}).status_code == 422
    longest = {"name": "x" * 120, "price": "5", "category": "C" * 60}
    assert client.post("/api/admin/menu", json=longest).status_code == 201


# =============================================================================
# WEB FLOW
# =============================================================================

def test_variant_item_needs_a_choice(client):
    cart = open_cart(client)

    response = client.post(f"{cart}/items", json={"item_id": "seco-chabelo"})

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "variant_required"
    assert body["default_variant_id"] == "personal"
    assert [o["id"] for o in body["options"]] == ["personal", "familiar"]
    assert client.get(cart).json()["lines"] == []


def test_unknown_item_and_variant(client):
    cart = open_cart(client)

    assert client.post(f"{cart}/items", json={"item_id": "ceviche"}).status_code == 404
    response = client.post(f"{cart}/items", json={"item_id": "seco-chabelo", "variant_id": "xl"})
    assert response.status_code == 404
    assert response.json()["error"] == "variant_not_found"


def test_web_cart_editing(client):
    cart = open_cart(client)

    client.post(f"{cart}/items", json={"item_id": "seco-chabelo", "variant_id": "familiar"})
    client.post(f"{cart}/items", json={"item_id": "sanguche-chancho"})
    body = client.post(f"{cart}/items", json={"item_id": "sanguche-chancho"}).json()
    assert body["total"] == "66.00"
    assert body["item_count"] == 3
    assert body["line_count"] == 2

    body = client.patch(f"{cart}/items", json={"item_id": "sanguche-chancho", "delta": -5}).json()
    line = next(l for l in body["lines"] if l["item_id"] == "sanguche-chancho")
    assert line["quantity"] == 1

    body = client.delete(f"{cart}/items", params={"item_id": "seco-chabelo", "variant_id": "familiar"}).json()
    assert [l["item_id"] for l in body["lines"]] == ["sanguche-chancho"]

    assert client.delete(cart).json()["lines"] == []


def test_suggestions_and_category_browsing(client):
    cart = open_cart(client)

    client.put(f"{cart}/suggestions", json={"item_ids": ["inca-kola"]})
    menu = client.get(f"{cart}/menu").json()
    assert [i["id"] for i in menu["items"]] == ["inca-kola"]

    menu = client.get(f"{cart}/menu", params={"category": "PLATOS"}).json()
    assert menu["suggested_ids"] == []
    assert [i["id"] for i in menu["items"]] == ["seco-chabelo"]


def test_web_checkout_validation(client):
    cart = open_cart(client)

    response = client.post(f"{cart}/checkout", json={"customer_name": "Rosa", "customer_phone": "987"})
    assert response.status_code == 400
    assert response.json()["error"] == "empty_cart"

    client.post(f"{cart}/items", json={"item_id": "inca-kola"})
    response = client.post(f"{cart}/checkout", json={"customer_name": " ", "customer_phone": "987"})
    assert response.json()["error"] == "missing_customer"

    response = client.post(
        f"{cart}/checkout",
        json={"customer_name": "Rosa", "customer_phone": "987", "modality": "delivery"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "missing_address"
    assert client.get(cart).json()["item_count"] == 1


def test_web_checkout(client, demo_store):
    cart = open_cart(client)
    client.post(f"{cart}/items", json={"item_id": "chicha-morada", "variant_id": "jarra"})
    client.post(f"{cart}/items", json={"item_id": "sanguche-pavo"})

    response = client.post(
        f"{cart}/checkout",
        json={
            "customer_name": "Rosa",
            "customer_phone": "987654321",
            "modality": "delivery",
            "address": "Av. Angamos 1234",
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] and body["persisted"]
    assert body["order"]["status"] == "Pendiente"
    assert body["order"]["order_origin"] == "Web"
    assert body["order"]["total"] == "28.00"
    assert body["order"]["items"][0]["variant"] == "Jarra 1L"
    assert "Av. Angamos 1234" in body["message_text"]
    assert body["message_link"].startswith("https://wa.me/51936494711?text=")
    assert client.get(cart).status_code == 404

    order = client.get(f"/api/orders/{body['order']['id']}").json()
    assert order["address"] == "Av. Angamos 1234"


def test_web_checkout_persistence_failure(client, demo_store):
    demo_store.failing_operations.add("insert_order")
    cart = open_cart(client)
    client.post(f"{cart}/items", json={"item_id": "inca-kola"})

    response = client.post(f"{cart}/checkout", json={"customer_name": "Rosa", "customer_phone": "987"})

    assert response.status_code == 502
    body = response.json()
    assert body["persisted"] is False
    assert body["error"] == "persistence_failed"
    assert body["message_link"]
    assert client.get(cart).json()["item_count"] == 1


def test_checked_out_carts_leave_the_registry(client):
    before = len(main.registry)

    for _ in range(5):
        cart = open_cart(client)
        client.post(f"{cart}/items", json={"item_id": "inca-kola"})
        response = client.post(f"{cart}/checkout", json={"customer_name": "Rosa", "customer_phone": "987"})
        assert response.status_code == 201

    assert len(main.registry) == before


def test_failed_checkout_keeps_the_cart_open(client, demo_store):
    demo_store.failing_operations.add("insert_order")
    cart = open_cart(client)
    client.post(f"{cart}/items", json={"item_id": "inca-kola"})

    client.post(f"{cart}/checkout", json={"customer_name": "Rosa", "customer_phone": "987"})

    assert client.get(cart).status_code == 200


def test_close_cart_and_terminal(client):
    cart = open_cart(client)
    terminal = open_terminal(client)
    before = len(main.registry)

    assert client.post(f"{cart}/close").json()["success"]
    assert client.post(f"{terminal}/close").json()["success"]

    assert len(main.registry) == before - 2
    assert client.get(cart).status_code == 404
    assert client.get(terminal).status_code == 404
    assert client.post(f"{cart}/close").status_code == 404


def test_unknown_cart_handle(client):
    response = client.get("/api/web/carts/nope")

    assert response.status_code == 404
    assert response.json()["error"] == "session_not_found"


# =============================================================================
# POS FLOW
# =============================================================================

def test_terminal_requires_open_cash_session(client):
    response = client.post("/api/pos/terminals", json={"cash_session_id": 999})

    assert response.status_code == 404
    assert response.json()["error"] == "cash_session_not_found"


def test_pos_ticket_removes_at_zero(client):
    terminal = open_terminal(client)
    client.post(f"{terminal}/items", json={"item_id": "inca-kola"})

    body = client.patch(f"{terminal}/items", json={"item_id": "inca-kola", "delta": -1}).json()

    assert body["lines"] == []
    assert body["can_checkout"] is False


def test_pos_sale(client):
    before = Decimal(client.get("/api/cash-sessions/1").json()["total_sales"])
    terminal = open_terminal(client)
    assert client.get(terminal).json()["cashier"] == "Caja Principal"

    client.post(f"{terminal}/items", json={"item_id": "sanguche-chancho"})
    client.post(f"{terminal}/items", json={"item_id": "chifles", "variant_id": "chico"})
    client.post(f"{terminal}/items", json={"item_id": "sanguche-chancho"})

    response = client.post(f"{terminal}/checkout", json={"payment_method": "Efectivo", "received_amount": "20"})
    assert response.status_code == 400
    assert response.json()["error"] == "insufficient_cash"

    response = client.post(f"{terminal}/checkout", json={"payment_method": "Efectivo", "received_amount": 50})
    assert response.status_code == 201
    body = response.json()
    assert Decimal(body["change"]) == Decimal("16.00")
    assert body["order"]["status"] == "Completado"
    assert body["order"]["order_origin"] == "Local"
    assert body["order"]["customer_name"] == "Venta Local"
    assert body["receipt"]["cashier"] == "Caja Principal"
    assert "VUELTO:" in body["receipt"]["text"]
    assert body["share_link"].startswith("https://wa.me/?text=")

    after = Decimal(client.get("/api/cash-sessions/1").json()["total_sales"])
    assert after == before + Decimal("34.00")

    state = client.get(terminal).json()
    assert state["lines"] == []
    assert state["received_amount"] == ""


def test_pos_non_cash_sale(client):
    terminal = open_terminal(client)
    client.post(f"{terminal}/items", json={"item_id": "inca-kola"})

    body = client.post(f"{terminal}/checkout", json={"payment_method": "Yape", "received_amount": "1"}).json()

    assert body["success"]
    assert Decimal(body["change"]) == 0
    assert body["receipt"]["change"] is None


def test_pos_invalid_tender(client):
    terminal = open_terminal(client)
    client.post(f"{terminal}/items", json={"item_id": "inca-kola"})

    response = client.post(f"{terminal}/checkout", json={"received_amount": "cinco"})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_amount"


def test_pos_persistence_failure(client, demo_store):
    terminal = open_terminal(client)
    client.post(f"{terminal}/items", json={"item_id": "inca-kola"})
    demo_store.failing_operations.add("insert_order")

    response = client.post(f"{terminal}/checkout", json={})

    assert response.status_code == 502
    assert response.json()["error"] == "persistence_failed"
    assert client.get(terminal).json()["item_count"] == 1


# =============================================================================
# ORDERS
# =============================================================================

def test_order_listing(client):
    cart = open_cart(client)
    client.post(f"{cart}/items", json={"item_id": "inca-kola"})
    client.post(f"{cart}/checkout", json={"customer_name": "Rosa", "customer_phone": "987"})
    terminal = open_terminal(client)
    client.post(f"{terminal}/items", json={"item_id": "inca-kola"})
    client.post(f"{terminal}/checkout", json={})

    assert client.get("/api/orders").json()["total"] == 2
    local = client.get("/api/orders", params={"origin": "Local"}).json()
    assert [o["order_origin"] for o in local["orders"]] == ["Local"]
    assert client.get("/api/orders", params={"origin": "Fax"}).status_code == 400
    assert client.get("/api/orders/999").status_code == 404


class RecordingTask:
    def __init__(self):
        self.payloads = []

    def delay(self, payload):
        self.payloads.append(payload)


def test_excel_export_is_queued_when_enabled(client, monkeypatch):
    task = RecordingTask()
    monkeypatch.setattr(main.settings, "excel_export_enabled", True)
    monkeypatch.setattr(main, "export_order_to_excel", task)

    terminal = open_terminal(client)
    client.post(f"{terminal}/items", json={"item_id": "inca-kola"})
    order_id = client.post(f"{terminal}/checkout", json={}).json()["order"]["id"]

    assert [payload["id"] for payload in task.payloads] == [order_id]


def test_unknown_cash_session(client):
    assert client.get("/api/cash-sessions/77").status_code == 404
