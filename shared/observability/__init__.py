from .setup import setup_observability
from .metrics import (
    pos_web_orders_created_total,
    pos_order_accept_total,
    pos_draft_finalize_total,
    pos_realtime_subscribers,
    pos_realtime_events_total,
    pos_realtime_dropped_total
)
