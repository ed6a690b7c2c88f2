"""Writes that race a finalize on the same order, interleaved through a second session."""
from decimal import Decimal

import pytest

from services.order_service import drafts as drafts_module
from services.order_service import service as service_module
from services.order_service.drafts import DraftService
from services.order_service.models import ACTIVE, COMPLETED, DRAFT, OrderCounter
from services.order_service.repository import OrderRepository
from services.order_service.schemas import DraftSave, ItemsUpdate, OrderCreate, OrderItemIn, PaymentDetails
from services.order_service.service import OrderService
from services.product_service.models import Product
from services.product_service.repository import ProductRepository
from shared.exceptions import Conflict, InvalidState, NotFound


async def _product(db, quantity="10"):
    return await ProductRepository.create_product(
        db, Product(name="Latte", price=Decimal("5.00"), quantity=Decimal(quantity))
    )


def _lines(product_id, quantity):
    return [OrderItemIn(product_id=product_id, quantity=quantity)]


async def _snapshot(session_factory, order_id, product_id):
    async with session_factory() as session:
        order = await OrderRepository.get_order(session, order_id)
        product = await ProductRepository.get_product_by_id(session, product_id)
        return order, product


def _run_first(monkeypatch, module, before):
    """Make the module's next build_items call run `before` in another session first."""
    real = module.build_items
    pending = [before]

    async def interleaved(db, items, **kwargs):
        if pending:
            await pending.pop()()
        return await real(db, items, **kwargs)

    monkeypatch.setattr(module, "build_items", interleaved)


@pytest.mark.asyncio
async def test_draft_save_never_lands_on_a_finalized_order(session_factory, db, monkeypatch):
    product = await _product(db)
    draft = await DraftService.save_draft(db, DraftSave(items=_lines(product.id, 2)))

    async def finalize_elsewhere():
        async with session_factory() as other:
            await DraftService.finalize_draft(other, draft.id, PaymentDetails(paid_amount=Decimal("10.00")))

    _run_first(monkeypatch, drafts_module, finalize_elsewhere)
    with pytest.raises(NotFound):
        await DraftService.save_draft(db, DraftSave(id=draft.id, items=_lines(product.id, 5)))

    order, stored = await _snapshot(session_factory, draft.id, product.id)
    assert order.status == COMPLETED
    assert [i.quantity for i in order.items] == [2]
    assert order.total == Decimal("10.00")
    assert order.paid_amount + order.due_amount == order.total
    assert stored.quantity == Decimal("8")


@pytest.mark.asyncio
async def test_item_edit_never_lands_on_a_completed_order(session_factory, db, monkeypatch):
    product = await _product(db)
    order = await OrderService.create_order(db, OrderCreate(items=_lines(product.id, 2)))
    assert order.status == ACTIVE

    async def complete_elsewhere():
        async with session_factory() as other:
            await OrderService.complete(other, order.id, PaymentDetails(paid_amount=Decimal("10.00")))

    _run_first(monkeypatch, service_module, complete_elsewhere)
    with pytest.raises(InvalidState):
        await OrderService.update_items(db, order.id, ItemsUpdate(items=_lines(product.id, 6)))

    stored_order, stored = await _snapshot(session_factory, order.id, product.id)
    assert stored_order.status == COMPLETED
    assert [i.quantity for i in stored_order.items] == [2]
    assert stored_order.paid_amount + stored_order.due_amount == stored_order.total == Decimal("10.00")
    assert stored.quantity == Decimal("8")


@pytest.mark.asyncio
async def test_concurrent_draft_saves_do_not_overwrite_each_other(session_factory, db, monkeypatch):
    product = await _product(db)
    draft = await DraftService.save_draft(db, DraftSave(items=_lines(product.id, 1)))

    async def save_elsewhere():
        async with session_factory() as other:
            await DraftService.save_draft(other, DraftSave(id=draft.id, items=_lines(product.id, 3)))

    _run_first(monkeypatch, drafts_module, save_elsewhere)
    with pytest.raises(Conflict):
        await DraftService.save_draft(db, DraftSave(id=draft.id, items=_lines(product.id, 4)))

    order, _ = await _snapshot(session_factory, draft.id, product.id)
    assert order.status == DRAFT
    assert [i.quantity for i in order.items] == [3]
    assert order.total == Decimal("15.00")


@pytest.mark.asyncio
async def test_finalize_of_a_stale_read_is_a_conflict(session_factory, db):
    product = await _product(db)
    draft = await DraftService.save_draft(db, DraftSave(items=_lines(product.id, 2)))
    stale = await OrderRepository.get_order(db, draft.id)

    async with session_factory() as other:
        await DraftService.save_draft(other, DraftSave(id=draft.id, items=_lines(product.id, 4)))

    with pytest.raises(Conflict):
        await OrderService.finalize(db, stale, PaymentDetails(paid_amount=Decimal("10.00")), (DRAFT,))

    order, stored = await _snapshot(session_factory, draft.id, product.id)
    assert order.status == DRAFT
    assert order.total == Decimal("20.00")
    assert stored.quantity == Decimal("10")


@pytest.mark.asyncio
async def test_item_edit_without_a_race_still_applies(session_factory, db):
    product = await _product(db)
    order = await OrderService.create_order(db, OrderCreate(items=_lines(product.id, 1)))
    edited = await OrderService.update_items(db, order.id, ItemsUpdate(items=_lines(product.id, 3)))
    assert [i.quantity for i in edited.items] == [3]
    assert edited.total == Decimal("15.00")


@pytest.mark.asyncio
async def test_order_counter_seeds_itself_on_a_fresh_install(db):
    assert await OrderRepository.next_order_number(db) == 1
    assert await OrderRepository.next_order_number(db) == 2
    await db.commit()


@pytest.mark.asyncio
async def test_order_counter_tolerates_a_concurrent_first_order(db, monkeypatch):
    # Another first order seeded the row between our bump and our insert
    db.add(OrderCounter(id="orders", value=5))
    await db.commit()
    real = OrderRepository._bump_counter
    calls = []

    async def first_bump_misses(session):
        calls.append(session)
        if len(calls) == 1:
            return None
        return await real(session)

    monkeypatch.setattr(OrderRepository, "_bump_counter", staticmethod(first_bump_misses))
    assert await OrderRepository.next_order_number(db) == 6
    await db.commit()
