"""
Order Settlement Engine

Turns a finalized Cart into a persisted order:
    - checkout_web(): customer order, status Pendiente, WhatsApp summary
    - checkout_pos(): counter sale, status Completado, cash-session add,
      change computation and a printable receipt

Validation problems never raise. They come back as a result with
``success=False`` and an ``error_code``, and leave the cart untouched.
Message and receipt rendering run after persistence and their failures
are only logged.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Optional, Union

from restaurant_pos.core.config import Settings, get_settings
from restaurant_pos.models import Modality, OrderOrigin, OrderStatus, PaymentMethod
from restaurant_pos.services.cart import Cart
from restaurant_pos.services.messaging import BaseMessagingService
from restaurant_pos.services.receipts import (
    Receipt,
    build_receipt,
    build_whatsapp_link,
    render_order_message,
    render_receipt_share_message,
    render_receipt_text,
)
from restaurant_pos.services.storage import (
    BaseStore,
    OrderLineSnapshot,
    OrderRecord,
    StorageError,
    StoredOrder,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Error codes
EMPTY_CART = "empty_cart"
MISSING_CUSTOMER = "missing_customer"
MISSING_ADDRESS = "missing_address"
INSUFFICIENT_CASH = "insufficient_cash"
INVALID_AMOUNT = "invalid_amount"
PERSISTENCE_FAILED = "persistence_failed"
SESSION_UPDATE_FAILED = "session_update_failed"

VALIDATION_ERRORS = frozenset({
    EMPTY_CART, MISSING_CUSTOMER, MISSING_ADDRESS, INSUFFICIENT_CASH, INVALID_AMOUNT,
})

OrderHook = Callable[[StoredOrder], Any]


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str


class InvalidAmount(ValueError):
    """The tendered amount is not a finite number."""


# =============================================================================
# VALIDATION AND ARITHMETIC
# =============================================================================

def _blank(value: Optional[str]) -> bool:
    return not (value or "").strip()


def validate_web_checkout(
    cart: Cart,
    customer_name: Optional[str],
    customer_phone: Optional[str],
    modality: Modality,
    address: Optional[str],
) -> Optional[ValidationIssue]:
    """First precondition a web checkout violates, or None."""
    if cart.is_empty:
        return ValidationIssue(EMPTY_CART, "El carrito está vacío")
    if _blank(customer_name) or _blank(customer_phone):
        return ValidationIssue(MISSING_CUSTOMER, "Ingresa tu nombre y teléfono")
    if modality is Modality.DELIVERY and _blank(address):
        return ValidationIssue(MISSING_ADDRESS, "Ingresa la dirección de entrega")
    return None


def parse_tendered(raw: Union[str, Decimal, int, float, None]) -> Optional[Decimal]:
    """
    Parse the cashier's tendered amount.

    Returns None for an empty field, which means exact payment.

    Raises:
        InvalidAmount: not a finite number
    """
    if raw is None:
        return None
    if isinstance(raw, Decimal):
        value = raw
    else:
        text = str(raw).strip()
        if not text:
            return None
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise InvalidAmount(f"{raw!r} is not a valid amount") from None
    if not value.is_finite():
        raise InvalidAmount(f"{raw!r} is not a valid amount")
    return value


def compute_change(
    total: Decimal,
    received: Optional[Decimal],
    payment_method: PaymentMethod,
) -> Decimal:
    """Change due; always zero for non-cash methods, never negative."""
    if payment_method is not PaymentMethod.CASH:
        return ZERO
    effective = received if received is not None else total
    return max(ZERO, effective - total)


def validate_tender(
    total: Decimal,
    raw_received: Union[str, Decimal, None],
    payment_method: PaymentMethod,
) -> tuple[Optional[Decimal], Optional[ValidationIssue]]:
    """
    Check the tendered amount for a sale of ``total``.

    Returns:
        (received, issue): the effective amount received, or an issue that
        blocks the sale. Non-cash methods ignore the tendered field.
    """
    if payment_method is not PaymentMethod.CASH:
        return total, None
    try:
        received = parse_tendered(raw_received)
    except InvalidAmount:
        return None, ValidationIssue(INVALID_AMOUNT, "El monto recibido no es un número válido")
    if received is None:
        return total, None
    if received < total:
        return None, ValidationIssue(INSUFFICIENT_CASH, "El monto recibido es menor al total")
    return received, None


def snapshot_lines(cart: Cart) -> tuple[OrderLineSnapshot, ...]:
    """Freeze the cart lines at their effective unit price."""
    return tuple(
        OrderLineSnapshot(
            name=line.item.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            variant=line.variant.name if line.variant is not None else None,
        )
        for line in cart.lines
    )


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class CheckoutResult:
    """
    Outcome of a web checkout.

    The message text and link are produced even when persistence failed,
    so the customer can still reach the store.
    """
    success: bool
    persisted: bool = False
    order: Optional[StoredOrder] = None
    message_text: Optional[str] = None
    message_link: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_validation_error(self) -> bool:
        return self.error_code in VALIDATION_ERRORS


@dataclass
class SaleResult:
    """Outcome of a POS sale."""
    success: bool
    order: Optional[StoredOrder] = None
    receipt: Optional[Receipt] = None
    receipt_text: Optional[str] = None
    change: Optional[Decimal] = None
    received: Optional[Decimal] = None
    share_link: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_validation_error(self) -> bool:
        return self.error_code in VALIDATION_ERRORS


# =============================================================================
# ENGINE
# =============================================================================

class SettlementEngine:
    """
    Settles carts against a store.

    Args:
        store: Persistence backend (insert_order, increment_session_sales)
        messaging: Channel for order summaries and shared tickets
        settings: Store identity and labels; defaults to get_settings()
        on_persisted: Callables run with each stored order (e.g. the
            Excel export). Their failures are logged and ignored.
    """

    def __init__(
        self,
        store: BaseStore,
        messaging: BaseMessagingService,
        settings: Optional[Settings] = None,
        on_persisted: Iterable[OrderHook] = (),
    ):
        self.store = store
        self.messaging = messaging
        self.settings = settings or get_settings()
        self.on_persisted = list(on_persisted)

    def _notify_persisted(self, order: StoredOrder) -> None:
        for hook in self.on_persisted:
            try:
                hook(order)
            except Exception:
                logger.exception(f"Post-persist hook failed for order #{order.id}")

    # =========================================================================
    # WEB
    # =========================================================================

    async def checkout_web(
        self,
        cart: Cart,
        customer_name: Optional[str],
        customer_phone: Optional[str],
        modality: Union[Modality, str] = Modality.PICKUP,
        address: Optional[str] = None,
    ) -> CheckoutResult:
        modality = Modality(modality)
        issue = validate_web_checkout(cart, customer_name, customer_phone, modality, address)
        if issue:
            logger.info(f"Web checkout blocked: {issue.code}")
            return CheckoutResult(success=False, error_code=issue.code, error_message=issue.message)

        record = OrderRecord(
            customer_name=customer_name.strip(),
            customer_phone=customer_phone.strip(),
            items=snapshot_lines(cart),
            total=cart.total(),
            modality=modality.value,
            address=(
                address.strip() if modality is Modality.DELIVERY
                else self.settings.pickup_address_label
            ),
            status=OrderStatus.PENDING.value,
            order_origin=OrderOrigin.WEB.value,
        )

        result = CheckoutResult(success=False)
        try:
            result.order = await self.store.insert_order(record)
            result.persisted = True
            result.success = True
            logger.info(f"Web order #{result.order.id} persisted (total={record.total})")
        except StorageError as e:
            logger.error(f"Web order could not be persisted: {e}")
            result.error_code = PERSISTENCE_FAILED
            result.error_message = "No se pudo registrar el pedido"

        # Sent whether or not the insert succeeded
        try:
            result.message_text = render_order_message(record, self.settings)
        except Exception:
            logger.exception("Could not render the order message")

        if result.message_text is not None:
            result.message_link = build_whatsapp_link(result.message_text, self.settings.whatsapp_number)
            try:
                sent = await self.messaging.deliver_order_message(result.message_text)
                if not sent.success:
                    logger.warning(f"Order message delivery failed: {sent.error_message}")
                result.message_link = sent.link_url or result.message_link
            except Exception:
                logger.exception("Order message delivery raised")

        if result.persisted:
            cart.clear()
            self._notify_persisted(result.order)
        return result

    # =========================================================================
    # POS
    # =========================================================================

    async def checkout_pos(
        self,
        cart: Cart,
        cash_session_id: int,
        cashier: str,
        payment_method: Union[PaymentMethod, str] = PaymentMethod.CASH,
        received_amount: Union[str, Decimal, None] = None,
    ) -> SaleResult:
        payment_method = PaymentMethod(payment_method)
        if cart.is_empty:
            return SaleResult(success=False, error_code=EMPTY_CART, error_message="El ticket está vacío")

        total = cart.total()
        received, issue = validate_tender(total, received_amount, payment_method)
        if issue:
            logger.info(f"POS sale blocked: {issue.code}")
            return SaleResult(success=False, error_code=issue.code, error_message=issue.message)
        change = compute_change(total, received, payment_method)

        record = OrderRecord(
            customer_name=self.settings.pos_customer_name,
            customer_phone=self.settings.pos_customer_phone,
            items=snapshot_lines(cart),
            total=total,
            modality=Modality.PICKUP.value,
            address=self.settings.pos_counter_label,
            status=OrderStatus.COMPLETED.value,
            order_origin=OrderOrigin.LOCAL.value,
            payment_method=payment_method.value,
            session_id=cash_session_id,
        )

        try:
            order = await self.store.insert_order(record)
        except StorageError as e:
            logger.error(f"POS sale could not be persisted: {e}")
            return SaleResult(
                success=False,
                error_code=PERSISTENCE_FAILED,
                error_message="No se pudo registrar la venta",
            )

        try:
            new_total = await self.store.increment_session_sales(cash_session_id, total)
        except StorageError as e:
            logger.error(f"Order #{order.id} saved but cash session #{cash_session_id} was not updated: {e}")
            return SaleResult(
                success=False,
                order=order,
                change=change,
                received=received,
                error_code=SESSION_UPDATE_FAILED,
                error_message="La venta se registró pero la caja no se actualizó",
            )

        logger.info(
            f"POS sale #{order.id} settled: {total} via {payment_method.value}, "
            f"session #{cash_session_id} total_sales={new_total}"
        )
        result = SaleResult(success=True, order=order, change=change, received=received)

        try:
            result.receipt = build_receipt(order, received, change, cashier, self.settings)
            result.receipt_text = render_receipt_text(result.receipt, self.settings)
        except Exception:
            logger.exception(f"Receipt for order #{order.id} could not be rendered")

        if result.receipt is not None:
            try:
                shared = await self.messaging.share_receipt(
                    render_receipt_share_message(result.receipt, self.settings)
                )
                if not shared.success:
                    logger.warning(f"Receipt share for order #{order.id} failed: {shared.error_message}")
                result.share_link = shared.link_url
            except Exception:
                logger.exception(f"Receipt share for order #{order.id} raised")

        cart.clear()
        self._notify_persisted(order)
        return result
