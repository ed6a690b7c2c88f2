"""
Terminal Order Session: the client-side state a staff terminal keeps.

Server events are hints. A frame stales the result sets it names and the
session re-fetches them; payloads are only used to raise alerts, never
merged into the lists.
"""
import json
from collections import OrderedDict
from decimal import Decimal
from typing import Callable, Optional

import httpx
import structlog

from shared.events import (
    ORDER_STATUS_CHANGED,
    ORDERS_ACTIVE,
    ORDERS_DRAFTS,
    ORDERS_WEB,
    WEB_ORDER_CREATED,
)
from .cache import QueryCache
from .client import OrderApiClient, OrderApiError, stock_of

logger = structlog.get_logger(__name__)

# Failures an operator action must survive by resyncing
RECOVERABLE = (OrderApiError, httpx.HTTPError)


class TerminalOrderSession:
    def __init__(self, api: OrderApiClient,
                 on_alert: Optional[Callable[[dict], None]] = None,
                 printer: Optional[Callable[[dict], None]] = None,
                 auto_refresh: bool = True):
        self.api = api
        self.on_alert = on_alert
        self.printer = printer
        self.auto_refresh = auto_refresh
        self.current_draft: Optional[dict] = None
        # order id -> order snapshot, oldest alert first
        self.alerts: "OrderedDict[str, dict]" = OrderedDict()

        self.cache = QueryCache()
        self.cache.register(ORDERS_WEB, api.list_web_orders)
        self.cache.register(ORDERS_ACTIVE, lambda: api.list_orders(status="active"))
        self.cache.register(ORDERS_DRAFTS, api.list_drafts)

    # --- VIEWS ---

    @property
    def pending_orders(self) -> list:
        return self.cache.get(ORDERS_WEB, [])

    @property
    def active_orders(self) -> list:
        return self.cache.get(ORDERS_ACTIVE, [])

    @property
    def drafts(self) -> list:
        return self.cache.get(ORDERS_DRAFTS, [])

    def is_stale(self, key: str) -> bool:
        return self.cache.is_stale(key)

    async def refresh(self) -> list:
        return await self.cache.refresh()

    async def resync(self) -> list:
        """Full reconciliation, used after (re)connecting to the realtime channel."""
        self.cache.invalidate_all()
        refreshed = await self.cache.refresh()
        pending_ids = {o["id"] for o in self.pending_orders}
        for order_id in list(self.alerts):
            if order_id not in pending_ids:
                self.alerts.pop(order_id)
        return refreshed

    # --- REALTIME ---

    async def handle_frame(self, raw) -> tuple:
        """Apply one frame from the realtime channel; unparsable frames are ignored."""
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            return ()
        if not isinstance(data, dict) or not isinstance(data.get("event"), str):
            return ()

        event = data["event"]
        staled = self.cache.apply_event(event)
        order = data.get("order") if isinstance(data.get("order"), dict) else None
        if order and order.get("id"):
            if event == WEB_ORDER_CREATED and order.get("status") == "pending":
                self._raise_alert(order)
            elif event == ORDER_STATUS_CHANGED and order.get("status") != "pending":
                # Another terminal already dealt with it
                self.alerts.pop(order["id"], None)

        if staled and self.auto_refresh:
            await self.refresh()
        return staled

    def _raise_alert(self, order: dict) -> None:
        if order["id"] in self.alerts:
            return
        self.alerts[order["id"]] = order
        if self.on_alert:
            self.on_alert(order)

    def acknowledge(self, order_id: str) -> None:
        self.alerts.pop(order_id, None)

    # --- LIVE ORDER ACTIONS ---

    async def _after_failure(self, action: str, order_id: str, exc: Exception) -> None:
        logger.warning("terminal_action_failed", action=action, order_id=order_id, error=str(exc))
        self.cache.invalidate(ORDERS_WEB, ORDERS_ACTIVE)
        await self.resync()

    async def accept(self, order_id: str) -> Optional[dict]:
        try:
            order = await self.api.accept(order_id)
        except RECOVERABLE as exc:
            # e.g. rejected elsewhere meanwhile, or the network dropped: resync instead of crashing
            await self._after_failure("accept", order_id, exc)
            return None
        self.acknowledge(order_id)
        self.cache.invalidate(ORDERS_WEB, ORDERS_ACTIVE)
        await self.refresh()
        return order

    async def reject(self, order_id: str) -> Optional[dict]:
        try:
            order = await self.api.reject(order_id)
        except RECOVERABLE as exc:
            await self._after_failure("reject", order_id, exc)
            return None
        self.acknowledge(order_id)
        self.cache.invalidate(ORDERS_WEB, ORDERS_ACTIVE)
        await self.refresh()
        return order

    async def edit_order(self, order_id: str, items: list) -> Optional[dict]:
        try:
            order = await self.api.update_items(order_id, items)
        except RECOVERABLE as exc:
            await self._after_failure("edit", order_id, exc)
            return None
        self.cache.invalidate(ORDERS_WEB, ORDERS_ACTIVE)
        await self.refresh()
        return order

    async def print_order(self, order_id: str) -> Optional[dict]:
        """Print from a fresh read, never from a possibly stale list entry."""
        try:
            order = await self.api.get_order(order_id)
        except RECOVERABLE as exc:
            await self._after_failure("print", order_id, exc)
            return None
        if self.printer:
            self.printer(order)
        return order

    # --- DRAFTS ---

    async def save_draft(self, items: list, **fields) -> dict:
        """Validation errors (e.g. an empty cart) propagate to the operator."""
        payload = dict(fields, items=items)
        draft_id = self.current_draft["id"] if self.current_draft else None
        draft = await self.api.save_draft(payload, draft_id)
        self.current_draft = draft
        self.cache.invalidate(ORDERS_DRAFTS)
        await self.refresh()
        return draft

    async def resume_draft(self, draft_id: str) -> dict:
        draft = await self.api.resume_draft(draft_id)
        self.current_draft = draft
        return draft

    def close_draft(self) -> None:
        self.current_draft = None

    async def available_stock(self, product_id: str) -> Decimal:
        """Availability as seen from the open draft, which does not compete with itself."""
        exclude = self.current_draft["id"] if self.current_draft else None
        product = await self.api.get_product(product_id, exclude_order_id=exclude)
        return stock_of(product)

    async def delete_draft(self, draft_id: str) -> bool:
        """Fails closed: the draft stays listed unless the server confirmed the delete."""
        try:
            await self.api.delete_draft(draft_id)
        except RECOVERABLE as exc:
            logger.warning("draft_delete_failed", order_id=draft_id, error=str(exc))
            self.cache.invalidate(ORDERS_DRAFTS)
            await self.refresh()
            return False
        self.cache.set(ORDERS_DRAFTS, [d for d in self.drafts if d["id"] != draft_id])
        if self.current_draft and self.current_draft["id"] == draft_id:
            self.current_draft = None
        return True

    async def finalize_current(self, payment: dict) -> Optional[dict]:
        """
        Finalize the open draft. Finalize is not idempotent, so a timeout is
        answered by reading the order back, not by sending it again.
        Returns None when the outcome could not be established.
        """
        if not self.current_draft:
            raise ValueError("No draft is open")
        draft_id = self.current_draft["id"]
        try:
            order = await self.api.finalize_draft(draft_id, payment)
        except httpx.TimeoutException:
            logger.warning("draft_finalize_timeout", order_id=draft_id)
            try:
                order = await self.api.get_order(draft_id)
            except RECOVERABLE as exc:
                logger.warning("draft_finalize_unknown", order_id=draft_id, error=str(exc))
                return None
            if order["status"] == "draft":
                return None
        self.current_draft = None
        self.cache.invalidate(ORDERS_DRAFTS, ORDERS_ACTIVE)
        await self.refresh()
        return order
