"""
Catalogue of realtime events and the cached result sets each one stales.

Terminals never merge event payloads into their lists directly; an event is
a hint to re-fetch the named result sets below.
"""

WEB_ORDER_CREATED = "web-order-created"
ORDER_STATUS_CHANGED = "order-status-changed"

# Named result sets a terminal caches
ORDERS = "orders"
ORDERS_WEB = "orders:web"
ORDERS_ACTIVE = "orders:active"
ORDERS_DRAFTS = "orders:drafts"
PRODUCTS = "products"

EVENT_INVALIDATIONS: dict[str, tuple[str, ...]] = {
    WEB_ORDER_CREATED: (ORDERS_WEB, ORDERS, PRODUCTS),
    ORDER_STATUS_CHANGED: (ORDERS_WEB, ORDERS_ACTIVE, ORDERS, PRODUCTS),
}


def invalidations_for(event: str) -> tuple[str, ...]:
    """Result sets staled by `event`; unknown events stale nothing."""
    return EVENT_INVALIDATIONS.get(event, ())


def build_event(event: str, order: dict, branch_id: str | None = None) -> dict:
    return {"event": event, "branchId": branch_id, "order": order}
