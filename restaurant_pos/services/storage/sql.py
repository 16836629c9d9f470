"""
SQL Store Implementation

Production implementation of BaseStore on top of the async SQLAlchemy
models in restaurant_pos.models. Each call runs in its own session and
transaction; SQLAlchemy errors surface as StorageError.

The cash-session add is a single UPDATE evaluated by the database:

    UPDATE cash_sessions SET total_sales = total_sales + :amount WHERE id = :id

so concurrent terminals can never overwrite each other's sales.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restaurant_pos import models
from restaurant_pos.services.catalog import Category, Item, to_decimal
from restaurant_pos.services.storage.base import (
    BaseStore,
    CashSessionNotFound,
    CashSessionSnapshot,
    OrderLineSnapshot,
    OrderRecord,
    StorageError,
    StoredOrder,
)

logger = logging.getLogger(__name__)


def _item_from_row(row: models.MenuItem) -> Item:
    return Item.from_dict({
        "id": row.id,
        "name": row.name,
        "price": row.price,
        "category": row.category,
        "variants": row.variants or [],
        "description": row.description,
        "image": row.image,
        "is_popular": row.is_popular,
    })


def _order_from_row(row: models.Order) -> StoredOrder:
    record = OrderRecord(
        customer_name=row.customer_name,
        customer_phone=row.customer_phone,
        items=tuple(OrderLineSnapshot.from_dict(i) for i in row.items),
        total=to_decimal(row.total),
        modality=row.modality,
        address=row.address,
        status=row.status,
        order_origin=row.order_origin,
        payment_method=row.payment_method,
        session_id=row.session_id,
    )
    created_at = row.created_at or datetime.now(timezone.utc)
    return StoredOrder(id=row.id, created_at=created_at, record=record)


def _session_from_row(row: models.CashSession) -> CashSessionSnapshot:
    return CashSessionSnapshot(
        id=row.id,
        user_name=row.user_name,
        total_sales=to_decimal(row.total_sales),
        total_entry=to_decimal(row.total_entry),
        total_exit=to_decimal(row.total_exit),
        status=row.status,
        opened_at=row.opened_at,
    )


class SqlStore(BaseStore):
    """BaseStore backed by a relational database."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        logger.info("SqlStore initialized")

    @property
    def provider_name(self) -> str:
        return "sql"

    # =========================================================================
    # CATALOG
    # =========================================================================

    async def list_items(self) -> list[Item]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(models.MenuItem).order_by(models.MenuItem.created_at.desc())
                )
                return [_item_from_row(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load menu items: {e}") from e

    async def list_categories(self) -> list[Category]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(models.Category).order_by(models.Category.sort_order)
                )
                return [
                    Category(id=row.id, name=row.name, sort_order=row.sort_order)
                    for row in result.scalars().all()
                ]
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load categories: {e}") from e

    async def save_item(self, item: Item) -> Item:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    row = await session.get(models.MenuItem, item.id)
                    if row is None:
                        row = models.MenuItem(id=item.id)
                        session.add(row)
                    row.name = item.name
                    row.description = item.description
                    row.price = item.price
                    row.category = item.category
                    row.image = item.image
                    row.is_popular = item.is_popular
                    row.variants = [v.to_dict() for v in item.variants]
        except SQLAlchemyError as e:
            raise StorageError(f"Could not save item {item.id}: {e}") from e

        logger.info(f"Saved menu item {item.id} ({item.name})")
        return item

    async def delete_item(self, item_id: str) -> bool:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    row = await session.get(models.MenuItem, item_id)
                    if row is None:
                        return False
                    await session.delete(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not delete item {item_id}: {e}") from e
        return True

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def insert_order(self, record: OrderRecord) -> StoredOrder:
        row = models.Order(
            customer_name=record.customer_name,
            customer_phone=record.customer_phone,
            items=[line.to_dict() for line in record.items],
            total=record.total,
            modality=record.modality,
            address=record.address,
            status=record.status,
            payment_method=record.payment_method,
            order_origin=record.order_origin,
            session_id=record.session_id,
        )
        try:
            async with self._session_maker() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not insert order: {e}") from e

        # Keep the caller's exact snapshot; the row may round to column scale
        created_at = row.created_at or datetime.now(timezone.utc)
        return StoredOrder(id=row.id, created_at=created_at, record=record)

    async def get_order(self, order_id: int) -> Optional[StoredOrder]:
        try:
            async with self._session_maker() as session:
                row = await session.get(models.Order, order_id)
                return _order_from_row(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load order #{order_id}: {e}") from e

    async def list_orders(
        self,
        skip: int = 0,
        limit: int = 50,
        origin: Optional[str] = None,
    ) -> list[StoredOrder]:
        query = select(models.Order).order_by(models.Order.id.desc())
        if origin:
            query = query.where(models.Order.order_origin == origin)
        try:
            async with self._session_maker() as session:
                result = await session.execute(query.offset(skip).limit(limit))
                return [_order_from_row(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StorageError(f"Could not list orders: {e}") from e

    # =========================================================================
    # CASH SESSIONS
    # =========================================================================

    async def get_cash_session(self, session_id: int) -> Optional[CashSessionSnapshot]:
        try:
            async with self._session_maker() as session:
                row = await session.get(models.CashSession, session_id)
                return _session_from_row(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load cash session #{session_id}: {e}") from e

    async def increment_session_sales(self, session_id: int, amount: Decimal) -> Decimal:
        stmt = (
            update(models.CashSession)
            .where(models.CashSession.id == session_id)
            .values(total_sales=models.CashSession.total_sales + amount)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    if result.rowcount == 0:
                        raise CashSessionNotFound(session_id)
                    new_total = await session.scalar(
                        select(models.CashSession.total_sales)
                        .where(models.CashSession.id == session_id)
                    )
        except SQLAlchemyError as e:
            raise StorageError(f"Could not update cash session #{session_id}: {e}") from e

        logger.debug(f"Cash session #{session_id} total_sales={new_total}")
        return to_decimal(new_total)

    async def health_check(self) -> bool:
        try:
            async with self._session_maker() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False
