"""
Pydantic Schemas for Request/Response Validation

Money fields are Decimals and serialize as strings ("14.00"), so no
amount ever round-trips through a float.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from restaurant_pos.models import Modality, OrderOrigin, PaymentMethod
from restaurant_pos.services.cart import Cart, CartLine
from restaurant_pos.services.receipts import Receipt, order_number
from restaurant_pos.services.sessions import PosTerminal, ShoppingSession
from restaurant_pos.services.storage import CashSessionSnapshot, OrderLineSnapshot, StoredOrder


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class CartItemRequest(BaseModel):
    """Add one unit of an item, with its variant when it has any."""
    item_id: str = Field(..., min_length=1, examples=["seco-chabelo"])
    variant_id: Optional[str] = Field(None, examples=["familiar"])


class QuantityUpdateRequest(BaseModel):
    item_id: str = Field(..., min_length=1)
    variant_id: Optional[str] = None
    delta: int = Field(..., ge=-99, le=99, examples=[1, -1])


class SuggestionsRequest(BaseModel):
    """Item ids picked by the recommendation assistant. Empty clears them."""
    item_ids: List[str] = Field(default_factory=list, examples=[["sanguche-chancho"]])


class WebCheckoutRequest(BaseModel):
    # Blank values are reported by the settlement engine, not rejected here
    customer_name: str = Field(default="", max_length=100, examples=["Rosa Chumpitaz"])
    customer_phone: str = Field(default="", max_length=20, examples=["987654321"])
    modality: Modality = Field(default=Modality.PICKUP, examples=["delivery"])
    address: Optional[str] = Field(None, max_length=255, examples=["Av. Angamos 1234, Surquillo"])


class OpenTerminalRequest(BaseModel):
    cash_session_id: int = Field(..., ge=1, examples=[1])


class PosCheckoutRequest(BaseModel):
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH, examples=["Efectivo"])
    received_amount: Optional[Union[str, int, float]] = Field(
        None,
        description="Cash tendered; empty or omitted means exact payment",
        examples=["50"],
    )

    @field_validator("received_amount")
    @classmethod
    def as_text(cls, v: Optional[Union[str, int, float]]) -> str:
        return "" if v is None else str(v)


class VariantPayload(BaseModel):
    id: Optional[str] = Field(None, max_length=64)
    name: str = Field(..., min_length=1, max_length=100)
    price: Decimal = Field(..., gt=0, decimal_places=2)


class MenuItemRequest(BaseModel):
    """Admin inventory form."""
    name: str = Field(..., min_length=1, max_length=120, examples=["Sanguche de Chancho"])
    price: Decimal = Field(..., gt=0, decimal_places=2, examples=["14.00"])
    category: Optional[str] = Field(None, max_length=60, examples=["SANGUCHES"])
    description: str = Field(default="", max_length=1000)
    image: Optional[str] = Field(None, max_length=500)
    is_popular: bool = False
    variants: List[VariantPayload] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


# =============================================================================
# CATALOG RESPONSES
# =============================================================================

class VariantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    price: Decimal


class MenuItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    price: Decimal
    category: str
    variants: List[VariantResponse]
    description: str
    image: Optional[str]
    is_popular: bool


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    sort_order: int


class MenuResponse(BaseModel):
    category: str
    search: str
    suggested_ids: List[str]
    items: List[MenuItemResponse]


class VariantRequiredResponse(BaseModel):
    """409 body: the item needs a variant; ``default_variant_id`` preselects the chooser."""
    success: bool = False
    error: str = "variant_required"
    detail: str
    item_id: str
    options: List[VariantResponse]
    default_variant_id: str


# =============================================================================
# CART RESPONSES
# =============================================================================

class CartLineResponse(BaseModel):
    item_id: str
    name: str
    variant_id: Optional[str]
    variant_name: Optional[str]
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    @classmethod
    def from_line(cls, line: CartLine) -> "CartLineResponse":
        return cls(
            item_id=line.item.id,
            name=line.item.name,
            variant_id=line.variant.id if line.variant else None,
            variant_name=line.variant.name if line.variant else None,
            quantity=line.quantity,
            unit_price=line.unit_price,
            subtotal=line.subtotal,
        )


class CartResponse(BaseModel):
    handle: str
    lines: List[CartLineResponse]
    line_count: int
    item_count: int
    total: Decimal

    @staticmethod
    def _cart_fields(handle: str, cart: Cart) -> dict:
        return {
            "handle": handle,
            "lines": [CartLineResponse.from_line(line) for line in cart.lines],
            "line_count": cart.line_count,
            "item_count": cart.item_count(),
            "total": cart.total(),
        }


class WebCartResponse(CartResponse):
    category: str
    suggested_ids: List[str]
    modality: Modality

    @classmethod
    def from_session(cls, handle: str, session: ShoppingSession) -> "WebCartResponse":
        return cls(
            **cls._cart_fields(handle, session.cart),
            category=session.category,
            suggested_ids=list(session.suggested_ids),
            modality=session.modality,
        )


class PosTerminalResponse(CartResponse):
    cash_session_id: int
    cashier: str
    payment_method: PaymentMethod
    received_amount: str
    change_due: Optional[Decimal]
    can_checkout: bool

    @classmethod
    def from_terminal(cls, handle: str, terminal: PosTerminal) -> "PosTerminalResponse":
        return cls(
            **cls._cart_fields(handle, terminal.cart),
            cash_session_id=terminal.cash_session_id,
            cashier=terminal.cashier,
            payment_method=terminal.payment_method,
            received_amount=terminal.received_amount,
            change_due=terminal.change_due,
            can_checkout=terminal.can_checkout,
        )


# =============================================================================
# ORDER RESPONSES
# =============================================================================

class OrderLineResponse(BaseModel):
    name: str
    quantity: int
    unit_price: Decimal
    variant: Optional[str]
    subtotal: Decimal

    @classmethod
    def from_snapshot(cls, line: OrderLineSnapshot) -> "OrderLineResponse":
        return cls(
            name=line.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            variant=line.variant,
            subtotal=line.subtotal,
        )


class OrderResponse(BaseModel):
    """Response schema for a single stored order."""
    id: int
    order_number: str
    created_at: datetime
    customer_name: str
    customer_phone: str
    items: List[OrderLineResponse]
    total: Decimal
    modality: str
    address: str
    status: str
    payment_method: Optional[str]
    order_origin: OrderOrigin
    session_id: Optional[int]

    @classmethod
    def from_stored(cls, order: StoredOrder) -> "OrderResponse":
        record = order.record
        return cls(
            id=order.id,
            order_number=order_number(order.id),
            created_at=order.created_at,
            customer_name=record.customer_name,
            customer_phone=record.customer_phone,
            items=[OrderLineResponse.from_snapshot(line) for line in record.items],
            total=record.total,
            modality=record.modality,
            address=record.address,
            status=record.status,
            payment_method=record.payment_method,
            order_origin=record.order_origin,
            session_id=record.session_id,
        )


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    total: int
    orders: List[OrderResponse]


class WebCheckoutResponse(BaseModel):
    success: bool
    persisted: bool
    order: Optional[OrderResponse] = None
    message_text: Optional[str] = None
    message_link: Optional[str] = None
    error: Optional[str] = None
    detail: Optional[str] = None


class ReceiptResponse(BaseModel):
    order_number: str
    created_at: datetime
    lines: List[OrderLineResponse]
    total: Decimal
    payment_method: str
    received: Decimal
    change: Optional[Decimal]
    cashier: str
    store_name: str
    text: Optional[str] = None

    @classmethod
    def from_receipt(cls, receipt: Receipt, text: Optional[str] = None) -> "ReceiptResponse":
        return cls(
            order_number=order_number(receipt.order_id),
            created_at=receipt.created_at,
            lines=[OrderLineResponse.from_snapshot(line) for line in receipt.lines],
            total=receipt.total,
            payment_method=receipt.payment_method,
            received=receipt.received,
            change=receipt.change,
            cashier=receipt.cashier,
            store_name=receipt.store_name,
            text=text,
        )


class PosSaleResponse(BaseModel):
    success: bool
    order: Optional[OrderResponse] = None
    receipt: Optional[ReceiptResponse] = None
    change: Optional[Decimal] = None
    received: Optional[Decimal] = None
    share_link: Optional[str] = None
    error: Optional[str] = None
    detail: Optional[str] = None


class CashSessionResponse(BaseModel):
    id: int
    user_name: str
    total_sales: Decimal
    total_entry: Decimal
    total_exit: Decimal
    status: str
    opened_at: Optional[datetime]

    @classmethod
    def from_snapshot(cls, session: CashSessionSnapshot) -> "CashSessionResponse":
        return cls(
            id=session.id,
            user_name=session.user_name,
            total_sales=session.total_sales,
            total_entry=session.total_entry,
            total_exit=session.total_exit,
            status=session.status,
            opened_at=session.opened_at,
        )


# =============================================================================
# COMMON
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    store: str
    redis: str
    messaging_service: str
    timestamp: datetime
