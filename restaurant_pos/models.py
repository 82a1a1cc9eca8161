"""
SQLAlchemy Database Models

Relational schema for the point-of-sale backend:
- Catalog: categories, menu items, ingredients, recipe links
- Inventory ledger: stock movements against ingredients
- Floor: outlets, tables, staff, customers, visits, reservations
- Ordering: orders, order items, excluded ingredients
- Billing: bills (with split parent pointer) and the payment ledger
- Table transfers
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from restaurant_pos.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_column(enum_cls: type[enum.Enum]) -> Enum:
    """Store enum values (not member names) as portable VARCHAR."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


# =============================================================================
# ENUMS
# =============================================================================

class OrderStatus(str, enum.Enum):
    """Order status workflow. VOID is terminal and set only by voiding."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    SERVED = "served"
    CLOSED = "closed"
    VOID = "void"


class OrderType(str, enum.Enum):
    DINE_IN = "dine_in"
    TAKEAWAY = "takeaway"
    ROOM_SERVICE = "room_service"
    DELIVERY = "delivery"


class BillStatus(str, enum.Enum):
    """Derived from paid vs total after every payment."""
    OPEN = "open"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    E_WALLET = "e_wallet"
    BANK_TRANSFER = "bank_transfer"
    ROOM_CHARGE = "room_charge"


class MovementReason(str, enum.Enum):
    ORDER_CONSUMPTION = "order_consumption"
    VOID_RESTOCK = "void_restock"
    MANUAL_ADJUSTMENT = "manual_adjustment"


# =============================================================================
# CATALOG
# =============================================================================

class MenuCategory(Base):
    __tablename__ = "menu_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    is_deleted = Column(Boolean, default=False, nullable=False)


class MenuItem(Base):
    """
    Sellable menu item. Owns its recipe (bill of materials).

    A menu item created with cost above price is stored inactive.
    """
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("menu_categories.id"), nullable=True, index=True)
    sku = Column(String(50), nullable=False, unique=True)
    name = Column(String(150), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    cost = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, default=True, nullable=False)
    preparation_time = Column(Integer, nullable=True)  # minutes
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    is_deleted = Column(Boolean, default=False, nullable=False)

    recipe = relationship(
        "MenuIngredient",
        order_by="MenuIngredient.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<MenuItem #{self.id} {self.sku} {self.name}>"


class Ingredient(Base):
    """
    Stock-tracked ingredient. Quantity never drops below zero; it is
    decremented only inside a committed order transaction.
    """
    __tablename__ = "ingredients"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_ingredients_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    quantity = Column(Float, nullable=False, default=0.0)
    unit = Column(String(20), nullable=False, default="pcs")
    is_allergen = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    is_deleted = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<Ingredient #{self.id} {self.name} {self.quantity}{self.unit}>"


class MenuIngredient(Base):
    """Recipe line: how much of one ingredient a single serving consumes."""
    __tablename__ = "menu_ingredients"
    __table_args__ = (
        UniqueConstraint("menu_item_id", "ingredient_id", name="uq_menu_ingredient"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False, index=True)
    ingredient_id = Column(Integer, ForeignKey("ingredients.id"), nullable=False)
    quantity = Column(Float, nullable=False)  # per serving
    is_removable = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class StockMovement(Base):
    """Append-only journal of every change to an ingredient's quantity."""
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ingredient_id = Column(Integer, ForeignKey("ingredients.id"), nullable=False, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id"), nullable=True, index=True)
    delta = Column(Float, nullable=False)
    reason = Column(enum_column(MovementReason), nullable=False)
    note = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


# =============================================================================
# FLOOR & PEOPLE
# =============================================================================

class Outlet(Base):
    """Outlet configuration consumed by billing (tax and service charge)."""
    __tablename__ = "outlets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    location = Column(String(255), nullable=True)
    tax_percentage = Column(Float, nullable=False, default=0.0)
    service_charge_percentage = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    is_deleted = Column(Boolean, default=False, nullable=False)


class DiningTable(Base):
    __tablename__ = "tables"

    id = Column(Integer, primary_key=True, autoincrement=True)
    outlet_id = Column(Integer, ForeignKey("outlets.id"), nullable=False, index=True)
    table_number = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=False, default=2)
    location_type = Column(String(20), nullable=True)  # indoor / outdoor
    status = Column(String(20), nullable=False, default="available")
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    is_deleted = Column(Boolean, default=False, nullable=False)


class Staff(Base):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    role = Column(String(50), nullable=False)
    pin_code = Column(String(10), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    is_deleted = Column(Boolean, default=False, nullable=False)


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hotel_guest_id = Column(String(50), nullable=True)
    customer_type = Column(String(20), nullable=False, default="walk_in")
    name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)
    visit_count = Column(Integer, nullable=False, default=0)
    last_visit = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    is_deleted = Column(Boolean, default=False, nullable=False)


class CustomerVisit(Base):
    __tablename__ = "customer_visits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    visit_type = Column(String(20), nullable=False)
    visit_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    room_number = Column(String(20), nullable=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=True)
    outlet_id = Column(Integer, ForeignKey("outlets.id"), nullable=False)
    total_spent = Column(Float, nullable=True)
    pax = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Reservation(Base):
    """
    Table reservation. The unique constraint closes the race left open by
    the read-then-insert double-booking check.
    """
    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("table_id", "reservation_time", name="uq_reservation_table_time"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    reservation_time = Column(DateTime(timezone=True), nullable=False, index=True)
    pax = Column(Integer, nullable=False)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=False)
    status = Column(String(20), nullable=False, default="booked")
    special_request = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# =============================================================================
# ORDERING
# =============================================================================

class Order(Base):
    """
    Order header. Exclusively owns its items; voiding is a status change,
    never a physical delete.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(64), nullable=False, unique=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    hotel_room = Column(String(20), nullable=True)
    waiter_id = Column(Integer, ForeignKey("staff.id"), nullable=True)
    outlet_id = Column(Integer, ForeignKey("outlets.id"), nullable=False, index=True)
    status = Column(enum_column(OrderStatus), nullable=False, default=OrderStatus.OPEN, index=True)
    order_type = Column(enum_column(OrderType), nullable=False, default=OrderType.DINE_IN)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Order #{self.id} {self.order_number} - {self.status.value}>"


class OrderItem(Base):
    """Order line. unit_price is captured at order time and never re-read."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)
    unit_price = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    order = relationship("Order", back_populates="items")
    exclusions = relationship(
        "OrderItemExclusion",
        order_by="OrderItemExclusion.id",
        cascade="all, delete-orphan",
    )

    @property
    def excluded_ingredient_ids(self) -> list[int]:
        return [e.ingredient_id for e in self.exclusions]

    @property
    def line_total(self) -> float:
        return round(self.quantity * self.unit_price, 2)


class OrderItemExclusion(Base):
    """Ingredient the customer asked to leave out of one order line."""
    __tablename__ = "order_item_ingredient_excluded"
    __table_args__ = (
        UniqueConstraint("order_item_id", "ingredient_id", name="uq_order_item_exclusion"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id"), nullable=False, index=True)
    ingredient_id = Column(Integer, ForeignKey("ingredients.id"), nullable=False)


# =============================================================================
# BILLING
# =============================================================================

class Bill(Base):
    """
    Bill for a whole order or for a split of its items.

    total = subtotal + service_charge + tax - discount, floored at 0.
    status is set to OPEN at creation and afterwards only derived from
    paid_amount vs total_amount.
    """
    __tablename__ = "bills"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bill_number = Column(String(64), nullable=False, unique=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    original_bill_id = Column(Integer, ForeignKey("bills.id"), nullable=True)
    status = Column(enum_column(BillStatus), nullable=False, default=BillStatus.OPEN, index=True)
    subtotal = Column(Float, nullable=False)
    tax_amount = Column(Float, nullable=False)
    service_charge = Column(Float, nullable=False)
    discount_amount = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)
    paid_amount = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    is_deleted = Column(Boolean, default=False, nullable=False)

    payments = relationship(
        "BillPayment",
        order_by="BillPayment.id",
        back_populates="bill",
    )

    @property
    def balance_due(self) -> float:
        return round(self.total_amount - self.paid_amount, 2)

    def __repr__(self):
        return f"<Bill #{self.id} order={self.order_id} {self.status.value} {self.paid_amount}/{self.total_amount}>"


class BillPayment(Base):
    """Append-only payment ledger row."""
    __tablename__ = "bill_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bill_id = Column(Integer, ForeignKey("bills.id"), nullable=False, index=True)
    payment_method = Column(enum_column(PaymentMethod), nullable=False)
    amount = Column(Float, nullable=False)
    reference_number = Column(String(100), nullable=True)
    room_charge_approved_by = Column(Integer, ForeignKey("staff.id"), nullable=True)
    paid_at = Column(DateTime(timezone=True), default=utcnow)

    bill = relationship("Bill", back_populates="payments")


# =============================================================================
# TABLE TRANSFERS
# =============================================================================

class TableTransfer(Base):
    """Record of an order moving between tables."""
    __tablename__ = "table_transfers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    from_table_id = Column(Integer, ForeignKey("tables.id"), nullable=False)
    to_table_id = Column(Integer, ForeignKey("tables.id"), nullable=False)
    transferred_by = Column(Integer, ForeignKey("staff.id"), nullable=False)
    reason = Column(Text, nullable=True)
    transferred_at = Column(DateTime(timezone=True), default=utcnow)
