"""Line pricing and payment settlement shared by drafts and live orders."""
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from services.product_service.repository import ProductRepository
from shared.exceptions import ValidationError
from .models import OrderItem, PAID, DUE, PARTIAL

CENTS = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(value).quantize(CENTS)


async def build_items(db: AsyncSession, items, allow_price_override: bool = True):
    """Resolve line items against the catalogue. Returns (order_items, total)."""
    products = await ProductRepository.get_products_by_ids(db, {i.product_id for i in items})
    lines = []
    total = Decimal("0")
    for position, item in enumerate(items):
        product = products.get(item.product_id)
        if product is None:
            raise ValidationError(f"Product not found: {item.product_id}")
        override = getattr(item, "unit_price", None) if allow_price_override else None
        unit_price = money(override if override is not None else product.unit_price_for(item.selected_size))
        line_total = money(unit_price * item.quantity)
        total += line_total
        lines.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            quantity=item.quantity,
            unit_price=unit_price,
            selected_size=item.selected_size,
            line_total=line_total,
            position=position,
        ))
    return lines, money(total)


def payment_status_for(paid: Decimal, due: Decimal) -> str:
    if due == 0:
        return PAID
    if paid == 0:
        return DUE
    return PARTIAL


def settle_payment(total, paid_amount):
    """
    Split `total` into (paid, due, payment_status) so that paid + due == total.
    """
    total = money(total)
    paid = money(paid_amount or 0)
    if paid < 0:
        raise ValidationError("Paid amount cannot be negative")
    if paid > total:
        raise ValidationError(f"Paid amount {paid} exceeds order total {total}")
    due = total - paid
    return paid, due, payment_status_for(paid, due)
