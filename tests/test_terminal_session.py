import json
from decimal import Decimal

import httpx
import pytest

from services.notification_service.hub import hub
from shared.events import ORDERS, ORDERS_WEB, PRODUCTS
from terminal.cache import QueryCache
from terminal.client import OrderApiClient, OrderApiError, stock_of
from terminal.session import TerminalOrderSession
from terminal.socket import realtime_url


async def _product(api, price="5.00", quantity="10"):
    return await api.create_product({"name": "Latte", "price": price, "quantity": quantity})


async def _web_order(api, product, quantity=1):
    resp = await api._client.post("/orders/public", json={
        "customerName": "Maya", "customerPhone": "555",
        "items": [{"productId": product["id"], "quantity": quantity}],
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def _next_frame(subscription) -> str:
    return json.dumps(subscription.queue.get_nowait())


def test_stock_of_prefers_available_stock():
    assert stock_of({"availableStock": "3.00", "quantity": "10"}) == Decimal("3.00")
    assert stock_of({"quantity": "7"}) == Decimal("7")
    assert stock_of({}) == Decimal("0")


def test_realtime_url():
    assert realtime_url("http://pos.local:8000", "b1") == "ws://pos.local:8000/realtime/ws?branchId=b1"
    assert realtime_url("https://pos.example/api/") == "wss://pos.example/api/realtime/ws?branchId="


@pytest.mark.asyncio
async def test_failed_fetch_leaves_result_set_stale():
    async def broken():
        raise OrderApiError(503, "down")

    cache = QueryCache()
    cache.register(ORDERS_WEB, broken)
    assert await cache.refresh() == []
    assert cache.is_stale(ORDERS_WEB)


def test_unknown_events_stale_nothing():
    cache = QueryCache()
    assert cache.apply_event("order-deleted") == ()
    assert cache.apply_event("web-order-created") == (ORDERS_WEB, ORDERS, PRODUCTS)


@pytest.mark.asyncio
async def test_web_order_frame_raises_one_alert_and_refreshes(api):
    alerts = []
    session = TerminalOrderSession(api, on_alert=alerts.append)
    await session.refresh()
    assert session.pending_orders == []

    subscription = hub.subscribe()
    product = await _product(api)
    order = await _web_order(api, product)
    frame = _next_frame(subscription)

    staled = await session.handle_frame(frame)
    assert ORDERS_WEB in staled
    assert [a["id"] for a in alerts] == [order["id"]]
    assert [o["id"] for o in session.pending_orders] == [order["id"]]
    assert not session.is_stale(ORDERS_WEB)

    # A duplicate frame never raises a second alert
    await session.handle_frame(frame)
    assert len(alerts) == 1


@pytest.mark.asyncio
async def test_accept_moves_order_to_active_list(api):
    session = TerminalOrderSession(api)
    subscription = hub.subscribe()
    product = await _product(api)
    order = await _web_order(api, product)
    await session.handle_frame(_next_frame(subscription))

    accepted = await session.accept(order["id"])
    assert accepted["status"] == "active"
    assert session.pending_orders == []
    assert [o["id"] for o in session.active_orders] == [order["id"]]
    assert order["id"] not in session.alerts


@pytest.mark.asyncio
async def test_status_change_from_another_terminal_clears_alert(api):
    session = TerminalOrderSession(api)
    subscription = hub.subscribe()
    product = await _product(api)
    order = await _web_order(api, product)
    await session.handle_frame(_next_frame(subscription))
    assert order["id"] in session.alerts

    await api.accept(order["id"])
    await session.handle_frame(_next_frame(subscription))
    assert order["id"] not in session.alerts
    assert session.pending_orders == []


@pytest.mark.asyncio
async def test_accept_failure_resyncs_instead_of_raising(api):
    session = TerminalOrderSession(api)
    product = await _product(api)
    in_store = await api.create_order({"items": [{"productId": product["id"], "quantity": 1}]})

    assert await session.accept(in_store["id"]) is None
    assert await session.accept("missing") is None
    assert await session.reject("missing") is None
    assert [o["id"] for o in session.active_orders] == [in_store["id"]]


@pytest.mark.asyncio
async def test_garbage_frames_are_ignored(api):
    session = TerminalOrderSession(api)
    for frame in ("not json", "[]", '{"event": 3}', b"\x00", None):
        assert await session.handle_frame(frame) == ()
    assert session.alerts == {}


@pytest.mark.asyncio
async def test_draft_does_not_compete_with_itself(api):
    session = TerminalOrderSession(api)
    product = await _product(api, quantity="10")
    draft = await session.save_draft([{"productId": product["id"], "quantity": 2}])

    assert session.current_draft["id"] == draft["id"]
    assert await session.available_stock(product["id"]) == Decimal("10")
    session.close_draft()
    assert await session.available_stock(product["id"]) == Decimal("8")


@pytest.mark.asyncio
async def test_empty_draft_error_reaches_operator(api):
    session = TerminalOrderSession(api)
    with pytest.raises(OrderApiError) as exc:
        await session.save_draft([])
    assert exc.value.status_code == 400
    assert session.current_draft is None


@pytest.mark.asyncio
async def test_delete_draft_fails_closed(api):
    session = TerminalOrderSession(api)
    product = await _product(api)
    draft = await session.save_draft([{"productId": product["id"], "quantity": 1}])
    live = await api.create_order({"items": [{"productId": product["id"], "quantity": 1}]})

    assert await session.delete_draft("missing") is False
    assert await session.delete_draft(live["id"]) is False
    assert (await api.get_order(live["id"]))["status"] == "active"
    assert [d["id"] for d in session.drafts] == [draft["id"]]

    assert await session.delete_draft(draft["id"]) is True
    assert session.drafts == []
    assert session.current_draft is None


@pytest.mark.asyncio
async def test_finalize_current_draft(api):
    session = TerminalOrderSession(api)
    product = await _product(api, quantity="10")
    await session.save_draft([{"productId": product["id"], "quantity": 2}])

    order = await session.finalize_current({"paidAmount": "10.00", "paymentMethod": "cash"})
    assert order["status"] == "completed"
    assert session.current_draft is None
    assert session.drafts == []
    assert Decimal((await api.get_product(product["id"]))["quantity"]) == Decimal("8")


@pytest.mark.asyncio
async def test_finalize_timeout_reads_the_outcome_back(api, monkeypatch):
    session = TerminalOrderSession(api)
    product = await _product(api, quantity="10")
    draft = await session.save_draft([{"productId": product["id"], "quantity": 2}])
    send = api.finalize_draft

    async def slow_finalize(draft_id, payment):
        await send(draft_id, payment)
        raise httpx.ReadTimeout("response lost")

    monkeypatch.setattr(api, "finalize_draft", slow_finalize)
    order = await session.finalize_current({"paidAmount": "10.00"})
    assert order["id"] == draft["id"]
    assert order["status"] == "completed"
    # Exactly one decrement even though the caller never saw the answer
    assert Decimal((await api.get_product(product["id"]))["quantity"]) == Decimal("8")


@pytest.mark.asyncio
async def test_finalize_timeout_before_write_keeps_draft_open(api, monkeypatch):
    session = TerminalOrderSession(api)
    product = await _product(api)
    draft = await session.save_draft([{"productId": product["id"], "quantity": 1}])

    async def lost_request(draft_id, payment):
        raise httpx.ConnectTimeout("no route")

    monkeypatch.setattr(api, "finalize_draft", lost_request)
    assert await session.finalize_current({"paidAmount": "5.00"}) is None
    assert session.current_draft["id"] == draft["id"]


@pytest.mark.asyncio
async def test_branch_terminal_keeps_alert_for_unbranched_order_after_resync(api):
    branch_api = OrderApiClient(api_key="test-terminal-key", branch_id="b1", client=api._client)
    session = TerminalOrderSession(branch_api)
    subscription = hub.subscribe("b1")
    product = await _product(api)
    order = await _web_order(api, product)

    await session.handle_frame(_next_frame(subscription))
    await session.resync()
    assert order["id"] in session.alerts
    assert [o["id"] for o in session.pending_orders] == [order["id"]]
