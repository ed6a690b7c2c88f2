"""
Stock Resolver.

Available-to-sell quantity is derived on every read from the authoritative
on-hand quantity and the open reservations of non-terminal orders; it is
never cached and never written back.
"""
from decimal import Decimal
from typing import Iterable, Optional, Tuple

Reservation = Tuple[str, Decimal]  # (order_id, quantity)


def available_stock(
    on_hand,
    reservations: Iterable[Reservation],
    exclude_order_id: Optional[str] = None,
) -> Decimal:
    """
    on_hand minus every reserved quantity, skipping lines of `exclude_order_id`.

    The result is not clamped: a negative figure means the product is
    over-sold and must render as out of stock.
    """
    reserved = sum(
        (Decimal(qty) for order_id, qty in reservations if order_id != exclude_order_id),
        Decimal("0"),
    )
    return Decimal(on_hand or 0) - reserved


def is_out_of_stock(available: Decimal) -> bool:
    return available <= 0
