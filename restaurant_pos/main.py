"""
FastAPI Application Entry Point

Churre Malcriado ordering & POS backend.
Runs on the in-memory store and mock messaging in development and on the
database and Twilio WhatsApp otherwise.

Endpoints:
    - GET  /api/menu, /api/categories: catalog reads
    - /api/admin/menu: inventory editor
    - /api/web/carts: customer cart sessions and checkout
    - /api/pos/terminals: cashier tickets and sales
    - GET  /api/orders, /api/cash-sessions/{id}: history and ledger
    - GET  /health: system health check
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, List, Optional

import redis
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from restaurant_pos.core.config import get_settings, setup_logging
from restaurant_pos.database import engine, init_db
from restaurant_pos.models import OrderOrigin
from restaurant_pos.schemas import (
    CartItemRequest,
    CashSessionResponse,
    CategoryResponse,
    ErrorResponse,
    HealthResponse,
    MenuItemRequest,
    MenuItemResponse,
    MenuResponse,
    OpenTerminalRequest,
    OrderListResponse,
    OrderResponse,
    PosCheckoutRequest,
    PosSaleResponse,
    PosTerminalResponse,
    QuantityUpdateRequest,
    ReceiptResponse,
    SuggestionsRequest,
    VariantRequiredResponse,
    VariantResponse,
    WebCartResponse,
    WebCheckoutRequest,
    WebCheckoutResponse,
)
from restaurant_pos.services.catalog import (
    ItemNotFound,
    Item,
    Variant,
    VariantNotFound,
    VariantSelectionRequired,
)
from restaurant_pos.services.messaging import BaseMessagingService, get_messaging_service
from restaurant_pos.services.sessions import SessionNotFound, SessionRegistry
from restaurant_pos.services.settlement import (
    PERSISTENCE_FAILED,
    SESSION_UPDATE_FAILED,
    SettlementEngine,
)
from restaurant_pos.services.storage import (
    BaseStore,
    CashSessionNotFound,
    StorageError,
    StoredOrder,
    get_store,
)
from restaurant_pos.tasks import export_order_to_excel

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

registry = SessionRegistry(idle_timeout=settings.session_idle_timeout)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 60)
    logger.info(f"🔥 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    store = get_store()
    if store.provider_name == "sql":
        await init_db()
        logger.info("✅ Database initialized")
    logger.info(f"✅ Store: {store.provider_name}")
    logger.info(f"✅ Messaging Service: {get_messaging_service().provider_name}")
    logger.info(f"✅ Excel export: {'on' if settings.excel_export_enabled else 'off'}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("✅ Application ready!")

    yield

    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Menu, cart, checkout and point-of-sale settlement for a single store.",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_registry() -> SessionRegistry:
    return registry


def queue_excel_export(order: StoredOrder) -> None:
    export_order_to_excel.delay(order.to_dict())
    logger.debug(f"Order #{order.id} queued for Excel export")


def get_settlement_engine(
    store: BaseStore = Depends(get_store),
    messaging: BaseMessagingService = Depends(get_messaging_service),
) -> SettlementEngine:
    hooks = [queue_excel_export] if settings.excel_export_enabled else []
    return SettlementEngine(store, messaging, settings, on_persisted=hooks)


def error_response(status_code: int, error: str, detail: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🔥 Bienvenido a {settings.store_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    store: BaseStore = Depends(get_store),
    messaging: BaseMessagingService = Depends(get_messaging_service),
) -> HealthResponse:
    store_status = "healthy" if await store.health_check() else "unhealthy"

    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except redis.RedisError as e:
        redis_status = f"unhealthy: {e}"
        logger.error(f"Redis health check failed: {e}")

    messaging_status = "healthy" if await messaging.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [store_status, redis_status, messaging_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        store=store_status,
        redis=redis_status,
        messaging_service=messaging_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# CATALOG ENDPOINTS
# =============================================================================

@app.get("/api/menu", response_model=List[MenuItemResponse], tags=["Catalog"])
async def list_menu(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    suggested: Optional[List[str]] = Query(None),
    store: BaseStore = Depends(get_store),
) -> List[MenuItemResponse]:
    """Current menu filtered by category, name search and suggested ids."""
    catalog = await store.load_catalog()
    items = catalog.filter(category, search, suggested or ())
    return [MenuItemResponse.model_validate(item) for item in items]


@app.get("/api/categories", response_model=List[CategoryResponse], tags=["Catalog"])
async def list_categories(store: BaseStore = Depends(get_store)) -> List[CategoryResponse]:
    categories = await store.list_categories()
    return [CategoryResponse.model_validate(c) for c in categories]


# =============================================================================
# ADMIN INVENTORY ENDPOINTS
# =============================================================================

async def _item_from_request(item_id: str, data: MenuItemRequest, store: BaseStore) -> Item:
    category = data.category
    if not category:
        categories = await store.list_categories()
        category = categories[0].name if categories else ""

    return Item(
        id=item_id,
        name=data.name,
        price=data.price,
        category=category,
        variants=tuple(
            Variant(id=v.id or uuid.uuid4().hex[:8], name=v.name.strip(), price=v.price)
            for v in data.variants
        ),
        description=data.description,
        image=data.image,
        is_popular=data.is_popular,
    )


@app.post(
    "/api/admin/menu",
    response_model=MenuItemResponse,
    status_code=201,
    tags=["Admin"],
)
async def create_menu_item(
    data: MenuItemRequest,
    store: BaseStore = Depends(get_store),
) -> MenuItemResponse:
    item = await store.save_item(await _item_from_request(uuid.uuid4().hex, data, store))
    return MenuItemResponse.model_validate(item)


@app.put("/api/admin/menu/{item_id}", response_model=MenuItemResponse, tags=["Admin"])
async def update_menu_item(
    item_id: str,
    data: MenuItemRequest,
    store: BaseStore = Depends(get_store),
) -> MenuItemResponse:
    catalog = await store.load_catalog()
    catalog.get(item_id)
    item = await store.save_item(await _item_from_request(item_id, data, store))
    return MenuItemResponse.model_validate(item)


@app.delete("/api/admin/menu/{item_id}", tags=["Admin"])
async def delete_menu_item(
    item_id: str,
    store: BaseStore = Depends(get_store),
) -> dict[str, Any]:
    if not await store.delete_item(item_id):
        raise ItemNotFound(item_id)
    logger.info(f"Menu item {item_id} deleted")
    return {"success": True, "item_id": item_id}


# =============================================================================
# WEB CART ENDPOINTS
# =============================================================================

@app.post("/api/web/carts", response_model=WebCartResponse, status_code=201, tags=["Web"])
async def open_web_cart(
    store: BaseStore = Depends(get_store),
    sessions: SessionRegistry = Depends(get_registry),
) -> WebCartResponse:
    handle, session = await sessions.open_shopping(store)
    return WebCartResponse.from_session(handle, session)


@app.get("/api/web/carts/{handle}", response_model=WebCartResponse, tags=["Web"])
async def get_web_cart(handle: str, sessions: SessionRegistry = Depends(get_registry)) -> WebCartResponse:
    return WebCartResponse.from_session(handle, sessions.get_shopping(handle))


@app.post(
    "/api/web/carts/{handle}/items",
    response_model=WebCartResponse,
    responses={409: {"model": VariantRequiredResponse}},
    tags=["Web"],
)
async def add_web_item(
    handle: str,
    data: CartItemRequest,
    sessions: SessionRegistry = Depends(get_registry),
) -> WebCartResponse:
    session = sessions.get_shopping(handle)
    session.add(data.item_id, data.variant_id)
    return WebCartResponse.from_session(handle, session)


@app.patch("/api/web/carts/{handle}/items", response_model=WebCartResponse, tags=["Web"])
async def update_web_item(
    handle: str,
    data: QuantityUpdateRequest,
    sessions: SessionRegistry = Depends(get_registry),
) -> WebCartResponse:
    session = sessions.get_shopping(handle)
    session.update_quantity(data.item_id, data.variant_id, data.delta)
    return WebCartResponse.from_session(handle, session)


@app.delete("/api/web/carts/{handle}/items", response_model=WebCartResponse, tags=["Web"])
async def remove_web_item(
    handle: str,
    item_id: str = Query(...),
    variant_id: Optional[str] = Query(None),
    sessions: SessionRegistry = Depends(get_registry),
) -> WebCartResponse:
    session = sessions.get_shopping(handle)
    session.remove(item_id, variant_id)
    return WebCartResponse.from_session(handle, session)


@app.delete("/api/web/carts/{handle}", response_model=WebCartResponse, tags=["Web"])
async def clear_web_cart(handle: str, sessions: SessionRegistry = Depends(get_registry)) -> WebCartResponse:
    session = sessions.get_shopping(handle)
    session.cart.clear()
    return WebCartResponse.from_session(handle, session)


@app.put("/api/web/carts/{handle}/suggestions", response_model=WebCartResponse, tags=["Web"])
async def set_web_suggestions(
    handle: str,
    data: SuggestionsRequest,
    sessions: SessionRegistry = Depends(get_registry),
) -> WebCartResponse:
    session = sessions.get_shopping(handle)
    session.set_suggestions(data.item_ids)
    return WebCartResponse.from_session(handle, session)


@app.get("/api/web/carts/{handle}/menu", response_model=MenuResponse, tags=["Web"])
async def browse_web_menu(
    handle: str,
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sessions: SessionRegistry = Depends(get_registry),
) -> MenuResponse:
    """Menu as this customer sees it; choosing a category drops the suggestions."""
    session = sessions.get_shopping(handle)
    if category is not None:
        session.select_category(category)
    if search is not None:
        session.search = search
    return MenuResponse(
        category=session.category,
        search=session.search,
        suggested_ids=list(session.suggested_ids),
        items=[MenuItemResponse.model_validate(item) for item in session.visible_items()],
    )


@app.post(
    "/api/web/carts/{handle}/checkout",
    response_model=WebCheckoutResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 502: {"model": WebCheckoutResponse}},
    tags=["Web"],
)
async def checkout_web_cart(
    handle: str,
    data: WebCheckoutRequest,
    sessions: SessionRegistry = Depends(get_registry),
    settlement: SettlementEngine = Depends(get_settlement_engine),
):
    session = sessions.get_shopping(handle)
    session.customer_name = data.customer_name
    session.customer_phone = data.customer_phone
    session.modality = data.modality
    session.address = data.address or ""

    result = await session.checkout(settlement)
    if result.is_validation_error:
        return error_response(400, result.error_code, result.error_message)

    body = WebCheckoutResponse(
        success=result.success,
        persisted=result.persisted,
        order=OrderResponse.from_stored(result.order) if result.order else None,
        message_text=result.message_text,
        message_link=result.message_link,
        error=result.error_code,
        detail=result.error_message,
    )
    if result.error_code == PERSISTENCE_FAILED:
        return JSONResponse(status_code=502, content=body.model_dump(mode="json"))
    if result.persisted:
        sessions.close(handle)
    return body


@app.post("/api/web/carts/{handle}/close", tags=["Web"])
async def close_web_cart(handle: str, sessions: SessionRegistry = Depends(get_registry)) -> dict[str, Any]:
    """Drop an abandoned cart; checked-out carts are closed automatically."""
    sessions.get_shopping(handle)
    sessions.close(handle)
    return {"success": True, "handle": handle}


# =============================================================================
# POS TERMINAL ENDPOINTS
# =============================================================================

@app.post("/api/pos/terminals", response_model=PosTerminalResponse, status_code=201, tags=["POS"])
async def open_pos_terminal(
    data: OpenTerminalRequest,
    store: BaseStore = Depends(get_store),
    sessions: SessionRegistry = Depends(get_registry),
) -> PosTerminalResponse:
    handle, terminal = await sessions.open_terminal(store, data.cash_session_id)
    return PosTerminalResponse.from_terminal(handle, terminal)


@app.get("/api/pos/terminals/{handle}", response_model=PosTerminalResponse, tags=["POS"])
async def get_pos_terminal(handle: str, sessions: SessionRegistry = Depends(get_registry)) -> PosTerminalResponse:
    return PosTerminalResponse.from_terminal(handle, sessions.get_terminal(handle))


@app.post(
    "/api/pos/terminals/{handle}/items",
    response_model=PosTerminalResponse,
    responses={409: {"model": VariantRequiredResponse}},
    tags=["POS"],
)
async def add_pos_item(
    handle: str,
    data: CartItemRequest,
    sessions: SessionRegistry = Depends(get_registry),
) -> PosTerminalResponse:
    terminal = sessions.get_terminal(handle)
    terminal.add(data.item_id, data.variant_id)
    return PosTerminalResponse.from_terminal(handle, terminal)


@app.patch("/api/pos/terminals/{handle}/items", response_model=PosTerminalResponse, tags=["POS"])
async def update_pos_item(
    handle: str,
    data: QuantityUpdateRequest,
    sessions: SessionRegistry = Depends(get_registry),
) -> PosTerminalResponse:
    terminal = sessions.get_terminal(handle)
    terminal.update_quantity(data.item_id, data.variant_id, data.delta)
    return PosTerminalResponse.from_terminal(handle, terminal)


@app.delete("/api/pos/terminals/{handle}/items", response_model=PosTerminalResponse, tags=["POS"])
async def remove_pos_item(
    handle: str,
    item_id: str = Query(...),
    variant_id: Optional[str] = Query(None),
    sessions: SessionRegistry = Depends(get_registry),
) -> PosTerminalResponse:
    terminal = sessions.get_terminal(handle)
    terminal.remove(item_id, variant_id)
    return PosTerminalResponse.from_terminal(handle, terminal)


@app.delete("/api/pos/terminals/{handle}", response_model=PosTerminalResponse, tags=["POS"])
async def clear_pos_ticket(handle: str, sessions: SessionRegistry = Depends(get_registry)) -> PosTerminalResponse:
    terminal = sessions.get_terminal(handle)
    terminal.cart.clear()
    terminal.received_amount = ""
    return PosTerminalResponse.from_terminal(handle, terminal)


@app.post(
    "/api/pos/terminals/{handle}/checkout",
    response_model=PosSaleResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 502: {"model": PosSaleResponse}},
    tags=["POS"],
)
async def checkout_pos_terminal(
    handle: str,
    data: PosCheckoutRequest,
    sessions: SessionRegistry = Depends(get_registry),
    settlement: SettlementEngine = Depends(get_settlement_engine),
):
    terminal = sessions.get_terminal(handle)
    terminal.payment_method = data.payment_method
    terminal.received_amount = data.received_amount or ""

    result = await terminal.checkout(settlement)
    if result.is_validation_error:
        return error_response(400, result.error_code, result.error_message)

    body = PosSaleResponse(
        success=result.success,
        order=OrderResponse.from_stored(result.order) if result.order else None,
        receipt=(
            ReceiptResponse.from_receipt(result.receipt, result.receipt_text)
            if result.receipt else None
        ),
        change=result.change,
        received=result.received,
        share_link=result.share_link,
        error=result.error_code,
        detail=result.error_message,
    )
    if result.error_code in (PERSISTENCE_FAILED, SESSION_UPDATE_FAILED):
        return JSONResponse(status_code=502, content=body.model_dump(mode="json"))
    return body


@app.post("/api/pos/terminals/{handle}/close", tags=["POS"])
async def close_pos_terminal(handle: str, sessions: SessionRegistry = Depends(get_registry)) -> dict[str, Any]:
    """End of shift for this screen; the cash session itself stays open."""
    sessions.get_terminal(handle)
    sessions.close(handle)
    return {"success": True, "handle": handle}


# =============================================================================
# ORDER & CASH SESSION ENDPOINTS
# =============================================================================

@app.get("/api/orders", response_model=OrderListResponse, tags=["Orders"])
async def list_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    origin: Optional[str] = Query(None),
    store: BaseStore = Depends(get_store),
) -> OrderListResponse:
    """Most recent orders first, optionally only Web or Local ones."""
    if origin:
        try:
            origin = OrderOrigin(origin).value
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid origin. Options: {[o.value for o in OrderOrigin]}",
            )

    orders = await store.list_orders(skip=skip, limit=limit, origin=origin)
    return OrderListResponse(
        total=len(orders),
        orders=[OrderResponse.from_stored(order) for order in orders],
    )


@app.get("/api/orders/{order_id}", response_model=OrderResponse, tags=["Orders"])
async def get_order(order_id: int, store: BaseStore = Depends(get_store)) -> OrderResponse:
    order = await store.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order #{order_id} not found")
    return OrderResponse.from_stored(order)


@app.get("/api/cash-sessions/{session_id}", response_model=CashSessionResponse, tags=["Cash Sessions"])
async def get_cash_session(session_id: int, store: BaseStore = Depends(get_store)) -> CashSessionResponse:
    cash_session = await store.get_cash_session(session_id)
    if cash_session is None:
        raise CashSessionNotFound(session_id)
    return CashSessionResponse.from_snapshot(cash_session)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(VariantSelectionRequired)
async def variant_required_handler(request: Request, exc: VariantSelectionRequired) -> JSONResponse:
    body = VariantRequiredResponse(
        detail=str(exc),
        item_id=exc.item.id,
        options=[VariantResponse.model_validate(v) for v in exc.options],
        default_variant_id=exc.default.id,
    )
    return JSONResponse(status_code=409, content=body.model_dump(mode="json"))


@app.exception_handler(SessionNotFound)
async def session_not_found_handler(request: Request, exc: SessionNotFound) -> JSONResponse:
    return error_response(404, "session_not_found", str(exc))


@app.exception_handler(ItemNotFound)
async def item_not_found_handler(request: Request, exc: ItemNotFound) -> JSONResponse:
    return error_response(404, "item_not_found", str(exc))


@app.exception_handler(VariantNotFound)
async def variant_not_found_handler(request: Request, exc: VariantNotFound) -> JSONResponse:
    return error_response(404, "variant_not_found", str(exc))


@app.exception_handler(CashSessionNotFound)
async def cash_session_not_found_handler(request: Request, exc: CashSessionNotFound) -> JSONResponse:
    return error_response(404, "cash_session_not_found", str(exc))


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error(f"Storage error on {request.url.path}: {exc}")
    return error_response(503, "storage_unavailable", str(exc) if settings.debug else None)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")
    return error_response(
        500,
        "Internal Server Error",
        str(exc) if settings.debug else "An unexpected error occurred",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "restaurant_pos.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
