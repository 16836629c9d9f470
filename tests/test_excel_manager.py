from datetime import datetime, timezone
from decimal import Decimal

import pytest

from restaurant_pos.services import excel_manager
from restaurant_pos.services.excel_manager import ExcelManager, summarize_items
from restaurant_pos.services.storage import OrderLineSnapshot, OrderRecord, StoredOrder
from restaurant_pos.tasks import export_order_to_excel


@pytest.fixture
def ledger(tmp_path, monkeypatch):
    monkeypatch.setattr(excel_manager, "DATA_DIR", tmp_path / "data")
    monkeypatch.setattr(excel_manager, "ORDERS_FILE", tmp_path / "data" / "orders.xlsx")
    monkeypatch.setattr(excel_manager, "ORDERS_LOCK", tmp_path / "data" / "orders.xlsx.lock")
    return tmp_path / "data" / "orders.xlsx"


def stored_order(order_id, origin="Local"):
    record = OrderRecord(
        customer_name="Venta Local",
        customer_phone="POS",
        items=(
            OrderLineSnapshot(name="Sanguche de Chancho", quantity=2, unit_price=Decimal("14.00")),
            OrderLineSnapshot(name="Chicha Morada", quantity=1, unit_price=Decimal("15.00"), variant="Jarra 1L"),
        ),
        total=Decimal("43.00"),
        modality="pickup",
        address="Mostrador",
        status="Completado",
        order_origin=origin,
        payment_method="Yape",
        session_id=1,
    )
    return StoredOrder(id=order_id, created_at=datetime.now(timezone.utc), record=record)


def test_summarize_items():
    items = [line.to_dict() for line in stored_order(1).record.items]

    assert summarize_items(items) == "2x Sanguche de Chancho; 1x Chicha Morada (Jarra 1L)"
    assert summarize_items([]) == ""


def test_export_appends_rows(ledger):
    first = ExcelManager.export_order(stored_order(1).to_dict())
    ExcelManager.export_order(stored_order(2, origin="Web").to_dict())

    assert first["success"]
    assert first["order_id"] == 1
    assert ledger.exists()

    rows = ExcelManager.get_all_orders()
    assert [row["order_id"] for row in rows] == [1, 2]
    assert [row["order_origin"] for row in rows] == ["Local", "Web"]
    assert rows[0]["payment_method"] == "Yape"
    assert float(rows[0]["total"]) == 43.0


def test_clear_all(ledger):
    ExcelManager.export_order(stored_order(1).to_dict())

    assert ExcelManager.clear_all() is True
    assert not ledger.exists()
    assert ExcelManager.get_all_orders() == []


def test_export_task_runs_locally(ledger):
    result = export_order_to_excel.apply(args=[stored_order(7).to_dict()]).get()

    assert result["success"]
    assert result["order_id"] == 7
    assert "processing_time_seconds" in result


@pytest.fixture
def failing_write(ledger, monkeypatch):
    attempts = []

    def to_excel(self, *args, **kwargs):
        attempts.append(args)
        raise PermissionError("orders.xlsx is open in another program")

    monkeypatch.setattr(excel_manager.pd.DataFrame, "to_excel", to_excel)
    return attempts


def test_write_errors_are_raised(failing_write):
    with pytest.raises(PermissionError):
        ExcelManager.export_order(stored_order(3).to_dict())


def test_export_task_retries_failed_writes(failing_write):
    result = export_order_to_excel.apply(args=[stored_order(8).to_dict()])

    assert result.failed()
    assert isinstance(result.result, PermissionError)
    # first attempt plus max_retries
    assert len(failing_write) == export_order_to_excel.max_retries + 1
