from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class OrderItemIn(CamelModel):
    product_id: str
    quantity: int = Field(ge=1)
    selected_size: Optional[str] = None
    # Terminals resend the snapshot they already hold; omitted -> resolved from the product
    unit_price: Optional[Decimal] = Field(default=None, ge=0)


class PublicOrderItemIn(CamelModel):
    product_id: str
    quantity: int = Field(ge=1)
    selected_size: Optional[str] = None


class OrderCreate(CamelModel):
    channel: Literal["in_store", "web"] = "in_store"
    branch_id: Optional[str] = None
    table_id: Optional[str] = None
    dining_option: str = "dine-in"
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_contact_type: Optional[str] = None
    items: List[OrderItemIn] = []


class WebOrderCreate(CamelModel):
    branch_id: Optional[str] = None
    customer_name: str = Field(min_length=1)
    customer_phone: str = Field(min_length=1)
    customer_contact_type: Optional[Literal["phone", "whatsapp", "telegram", "facebook", "other"]] = None
    payment_method: Optional[Literal["cash_on_delivery", "due"]] = None
    items: List[PublicOrderItemIn] = Field(min_length=1)


class DraftSave(CamelModel):
    id: Optional[str] = None
    branch_id: Optional[str] = None
    table_id: Optional[str] = None
    dining_option: str = "dine-in"
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    items: List[OrderItemIn] = []


class ItemsUpdate(CamelModel):
    items: List[OrderItemIn] = []


class PaymentDetails(CamelModel):
    # Cumulative amount received for the order
    paid_amount: Decimal = Decimal("0")
    payment_method: Optional[str] = None
    customer_id: Optional[str] = None


class OrderItemResponse(CamelModel):
    id: str
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    selected_size: Optional[str] = None
    line_total: Decimal

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class OrderResponse(CamelModel):
    id: str
    order_number: int
    status: str
    channel: str
    branch_id: Optional[str] = None
    table_id: Optional[str] = None
    dining_option: str
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_contact_type: Optional[str] = None
    total: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    payment_status: str
    payment_method: Optional[str] = None
    stock_committed: bool
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True
