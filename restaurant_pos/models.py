"""
SQLAlchemy Database Models

Tables backing the catalog, the order history and the cash-session ledger:
- menu_items / categories: the price list read by every cart session
- orders: immutable order records produced by settlement
- cash_sessions: running totals shared by POS terminals
"""

import enum
import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from restaurant_pos.database import Base


class OrderStatus(str, enum.Enum):
    """Order status at creation time. Later transitions happen in the back-office."""
    PENDING = "Pendiente"
    COMPLETED = "Completado"


class Modality(str, enum.Enum):
    """Fulfillment mode."""
    DELIVERY = "delivery"
    PICKUP = "pickup"


class OrderOrigin(str, enum.Enum):
    """Which screen produced the order."""
    WEB = "Web"
    LOCAL = "Local"


class PaymentMethod(str, enum.Enum):
    """Payment methods offered at the POS."""
    CASH = "Efectivo"
    YAPE = "Yape"
    PLIN = "Plin"
    CARD = "Tarjeta"


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(60), nullable=False, unique=True)
    sort_order = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<Category {self.name}>"


class MenuItem(Base):
    """
    A purchasable item. ``category`` holds the category name (denormalized),
    ``variants`` a JSON list of ``{"id", "name", "price"}`` objects.
    """
    __tablename__ = "menu_items"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(60), nullable=False, index=True)
    image = Column(String(500), nullable=True)
    is_popular = Column(Boolean, nullable=False, default=False)
    variants = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<MenuItem {self.id} - {self.name}>"


class CashSession(Base):
    """
    A cashier shift. Opening and closing happen elsewhere; this service only
    ever adds to ``total_sales`` in place.
    """
    __tablename__ = "cash_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_name = Column(String(100), nullable=False)
    total_sales = Column(Numeric(12, 2), nullable=False, default=0)
    total_entry = Column(Numeric(12, 2), nullable=False, default=0)
    total_exit = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="open")
    opened_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<CashSession #{self.id} - {self.user_name} - {self.total_sales}>"


class Order(Base):
    """
    Settled order. ``items`` is a JSON snapshot of
    ``{"name", "quantity", "price", "variant"}`` rows taken at checkout.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(30), nullable=False)

    items = Column(JSON, nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    modality = Column(String(20), nullable=False, default=Modality.PICKUP.value)
    address = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    payment_method = Column(String(20), nullable=True)
    order_origin = Column(String(10), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("cash_sessions.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Order #{self.id} - {self.order_origin} - {self.customer_name} - {self.status}>"
