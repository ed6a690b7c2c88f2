import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from shared.config.database import Base

# Order statuses
DRAFT = "draft"
PENDING = "pending" # created by the web channel, awaiting staff acceptance
ACTIVE = "active"
COMPLETED = "completed"
CANCELLED = "cancelled"

OPEN_STATUSES = (DRAFT, PENDING, ACTIVE)
TERMINAL_STATUSES = (COMPLETED, CANCELLED)

# Channels
IN_STORE = "in_store"
WEB = "web"

# Payment statuses
PAID = "paid"
DUE = "due"
PARTIAL = "partial"


def _utcnow():
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_number = Column(Integer, nullable=False, unique=True, index=True)
    status = Column(String, nullable=False, default=DRAFT, index=True)
    channel = Column(String, nullable=False, default=IN_STORE)
    branch_id = Column(String(36), nullable=True, index=True)
    table_id = Column(String(36), nullable=True)
    dining_option = Column(String, nullable=False, default="dine-in")

    customer_id = Column(String(36), nullable=True)
    customer_name = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    customer_contact_type = Column(String, nullable=True) # phone, whatsapp, telegram, facebook, other

    total = Column(Numeric(10, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)
    due_amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_status = Column(String, nullable=False, default="due")
    payment_method = Column(String, nullable=True)
    # Set in the same transaction that decrements on-hand stock for every line
    stock_committed = Column(Boolean, nullable=False, default=False)
    # Bumped by every write that changes lines or payment; those writes are conditional on it
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), nullable=False, index=True)
    product_name = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False)
    # Snapshot taken when the line is created; later product price edits never touch it
    unit_price = Column(Numeric(10, 2), nullable=False)
    selected_size = Column(String(50), nullable=True)
    line_total = Column(Numeric(10, 2), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    order = relationship("Order", back_populates="items")


class OrderCounter(Base):
    """Single-row counter behind the human-readable order numbers."""
    __tablename__ = "order_counters"

    id = Column(String, primary_key=True)
    value = Column(Integer, nullable=False, default=0)
