"""
Order Message and Receipt Rendering

Deterministic text output for the messaging channel and the POS printer:
    - render_order_message(): WhatsApp summary of a web order
    - build_whatsapp_link(): wa.me deep link carrying a pre-filled text
    - build_receipt() / render_receipt_text(): itemized POS receipt
    - render_receipt_share_message(): short ticket text for sharing

All amounts are exact Decimals until they reach format_money().
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional
from urllib.parse import quote

from restaurant_pos.core.config import Settings, get_settings
from restaurant_pos.models import Modality, PaymentMethod
from restaurant_pos.services.storage.base import OrderLineSnapshot, OrderRecord, StoredOrder

CENT = Decimal("0.01")


def format_money(amount: Decimal, symbol: Optional[str] = None) -> str:
    """Round to cents for display only, e.g. ``S/ 12.50``."""
    symbol = symbol if symbol is not None else get_settings().currency_symbol
    value = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    return f"{symbol} {value}"


def order_number(order_id: int) -> str:
    return f"000{order_id}"


def _line_label(line: OrderLineSnapshot) -> str:
    if line.variant:
        return f"{line.name} ({line.variant})"
    return line.name


# =============================================================================
# WEB ORDER MESSAGE
# =============================================================================

def render_order_message(record: OrderRecord, settings: Optional[Settings] = None) -> str:
    """
    Render the order summary sent to the store over WhatsApp.

    Contains the customer, the modality, the delivery address or the pickup
    point, one line per item with its subtotal, and the grand total.
    """
    settings = settings or get_settings()
    symbol = settings.currency_symbol

    is_delivery = record.modality == Modality.DELIVERY.value
    lines = [
        f"*PEDIDO {settings.store_name} - WEB*",
        "",
        f"🔥 *Cliente:* {record.customer_name}",
        f"📞 *Teléfono:* {record.customer_phone}",
        f"📍 *Modo:* {'🚀 Delivery' if is_delivery else '🏪 Recojo en Tienda'}",
    ]
    if is_delivery:
        lines.append(f"🏠 *Dirección:* {record.address}")
    else:
        lines.append(f"🏢 *Punto:* {settings.pickup_point}")

    lines += ["", "*DETALLE DEL PEDIDO:*"]
    lines += [
        f"• {line.quantity}x {_line_label(line)} - {format_money(line.subtotal, symbol)}"
        for line in record.items
    ]
    lines += [
        "",
        f"*TOTAL A PAGAR: {format_money(record.total, symbol)}*",
        "",
        "--------------------------------",
        "_¡Churre, confírmame el pedido para prender el fuego!_ 🌶️",
    ]
    return "\n".join(lines)


def build_whatsapp_link(text: str, number: Optional[str] = None) -> str:
    """wa.me link; without a number WhatsApp lets the user pick the chat."""
    digits = "".join(ch for ch in (number or "") if ch.isdigit())
    return f"https://wa.me/{digits}?text={quote(text, safe='')}"


# =============================================================================
# POS RECEIPT
# =============================================================================

@dataclass(frozen=True)
class Receipt:
    """
    Structured POS receipt.

    Attributes:
        order_id: Stored order id
        created_at: Order timestamp
        lines: Itemized snapshot lines
        total: Amount charged
        payment_method: Payment method label
        received: Amount tendered (equals total for exact/non-cash)
        change: Change due; None for non-cash methods
        cashier: Cash session owner
        store_name: Header line
    """
    order_id: int
    created_at: datetime
    lines: tuple[OrderLineSnapshot, ...]
    total: Decimal
    payment_method: str
    received: Decimal
    change: Optional[Decimal]
    cashier: str
    store_name: str

    @property
    def is_cash(self) -> bool:
        return self.payment_method == PaymentMethod.CASH.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_number": order_number(self.order_id),
            "created_at": self.created_at.isoformat(),
            "lines": [
                {**line.to_dict(), "subtotal": str(line.subtotal)} for line in self.lines
            ],
            "total": str(self.total),
            "payment_method": self.payment_method,
            "received": str(self.received),
            "change": str(self.change) if self.change is not None else None,
            "cashier": self.cashier,
            "store_name": self.store_name,
        }


def build_receipt(
    order: StoredOrder,
    received: Decimal,
    change: Decimal,
    cashier: str,
    settings: Optional[Settings] = None,
) -> Receipt:
    settings = settings or get_settings()
    payment_method = order.record.payment_method or PaymentMethod.CASH.value
    is_cash = payment_method == PaymentMethod.CASH.value
    return Receipt(
        order_id=order.id,
        created_at=order.created_at,
        lines=order.record.items,
        total=order.record.total,
        payment_method=payment_method,
        received=received,
        change=change if is_cash else None,
        cashier=cashier,
        store_name=settings.store_name,
    )


def _two_columns(left: str, right: str, width: int) -> str:
    space = max(1, width - len(left) - len(right))
    return f"{left}{' ' * space}{right}"


def render_receipt_text(receipt: Receipt, settings: Optional[Settings] = None) -> str:
    """Fixed-width receipt for a thermal printer."""
    settings = settings or get_settings()
    width = settings.receipt_width
    symbol = settings.currency_symbol
    rule = "-" * width

    out = [
        receipt.store_name.upper().center(width),
        settings.store_tagline.center(width),
        rule,
        f"ORDEN #{order_number(receipt.order_id)}".center(width),
        receipt.created_at.strftime("%d/%m/%Y %H:%M").center(width),
        rule,
        _two_columns("CANT DESCRIPCIÓN", "TOTAL", width),
    ]
    for line in receipt.lines:
        amount = format_money(line.subtotal, symbol)
        name_width = width - len(amount) - 6
        out.append(_two_columns(f"{line.quantity:<4} {line.name.upper()[:name_width]}", amount, width))
        if line.variant:
            out.append(f"       - {line.variant}")

    out += [
        rule,
        _two_columns("TOTAL PAGADO:", format_money(receipt.total, symbol), width),
        _two_columns("FORMA DE PAGO:", receipt.payment_method.upper(), width),
    ]
    if receipt.is_cash:
        out.append(_two_columns("RECIBIDO:", format_money(receipt.received, symbol), width))
        out.append(_two_columns("VUELTO:", format_money(receipt.change or Decimal("0"), symbol), width))
    out += [
        rule,
        "¡Gracias churre! Vuelve pronto.".center(width),
        f"Atendido por: {receipt.cashier}".center(width),
    ]
    return "\n".join(out)


def render_receipt_share_message(receipt: Receipt, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return (
        f"🔥 *{receipt.store_name}*\n"
        f"Hola churre, aquí tu ticket #{order_number(receipt.order_id)}\n"
        f"Total: {format_money(receipt.total, settings.currency_symbol)}\n"
        f"¡Vuelve pronto! 🌶️"
    )
