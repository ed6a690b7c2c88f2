from prometheus_client import Counter, Gauge

# Business Metrics
pos_web_orders_created_total = Counter(
    "pos_web_orders_created_total",
    "Total orders received through the web channel"
)

pos_order_accept_total = Counter(
    "pos_order_accept_total",
    "Accept commands processed",
    ["outcome"] # Labels: 'transitioned', 'noop'
)

pos_draft_finalize_total = Counter(
    "pos_draft_finalize_total",
    "Orders finalized from draft or active",
    ["payment_status"] # Labels: 'paid', 'partial', 'due'
)

pos_realtime_subscribers = Gauge(
    "pos_realtime_subscribers",
    "Number of currently connected terminal subscriptions"
)

pos_realtime_events_total = Counter(
    "pos_realtime_events_total",
    "Realtime events queued for delivery",
    ["event"]
)

pos_realtime_dropped_total = Counter(
    "pos_realtime_dropped_total",
    "Realtime events dropped because a subscriber buffer was full"
)
