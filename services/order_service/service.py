from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification_service.hub import hub
from services.product_service.repository import ProductRepository
from shared.events import WEB_ORDER_CREATED, ORDER_STATUS_CHANGED
from shared.exceptions import Conflict, InvalidState, NotFound, ValidationError
from shared.observability import (
    pos_draft_finalize_total,
    pos_order_accept_total,
    pos_web_orders_created_total,
)
from .models import (
    Order, ACTIVE, CANCELLED, COMPLETED, DRAFT, DUE, IN_STORE, PAID, PENDING, WEB,
)
from .pricing import build_items, payment_status_for, settle_payment
from .repository import OrderRepository
from .schemas import ItemsUpdate, OrderCreate, OrderResponse, PaymentDetails, WebOrderCreate

logger = structlog.get_logger(__name__)


def order_payload(order: Order) -> dict:
    """JSON-ready snapshot of an order, as sent to terminals."""
    return OrderResponse.model_validate(order).model_dump(mode="json", by_alias=True)


class OrderService:
    @staticmethod
    async def create_order(db: AsyncSession, data: OrderCreate):
        if not data.items:
            raise ValidationError("An order needs at least one line item")
        items, total = await build_items(db, data.items)
        channel = WEB if data.channel == WEB else IN_STORE
        order = Order(
            order_number=await OrderRepository.next_order_number(db),
            # Web orders wait for staff; terminal orders start in the active queue
            status=PENDING if channel == WEB else ACTIVE,
            channel=channel,
            branch_id=data.branch_id,
            table_id=data.table_id,
            dining_option=data.dining_option,
            customer_id=data.customer_id,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            customer_contact_type=data.customer_contact_type,
            total=total,
            paid_amount=0,
            due_amount=total,
            payment_status=payment_status_for(0, total),
            items=items,
        )
        return await OrderService._persist_new(db, order)

    @staticmethod
    async def create_web_order(db: AsyncSession, data: WebOrderCreate):
        items, total = await build_items(db, data.items, allow_price_override=False)
        payment_method = {"cash_on_delivery": "cash", "due": "due"}.get(data.payment_method)
        order = Order(
            order_number=await OrderRepository.next_order_number(db),
            status=PENDING,
            channel=WEB,
            branch_id=data.branch_id,
            dining_option="takeaway",
            customer_name=data.customer_name.strip(),
            customer_phone=data.customer_phone.strip(),
            customer_contact_type=data.customer_contact_type,
            total=total,
            paid_amount=0,
            due_amount=total,
            payment_status=payment_status_for(0, total),
            payment_method=payment_method,
            items=items,
        )
        return await OrderService._persist_new(db, order)

    @staticmethod
    async def _persist_new(db: AsyncSession, order: Order):
        await OrderRepository.add_order(db, order)
        await db.commit()
        order = await OrderRepository.get_order(db, order.id)
        logger.info("order_created", order_id=order.id, order_number=order.order_number,
                    channel=order.channel, status=order.status, total=str(order.total))
        if order.channel == WEB and order.status == PENDING:
            pos_web_orders_created_total.inc()
            OrderService.broadcast(WEB_ORDER_CREATED, order)
        return order

    @staticmethod
    def broadcast(event: str, order: Order) -> int:
        # Drafts belong to one terminal and never go over the channel
        if order.status == DRAFT:
            logger.warning("broadcast_refused_for_draft", order_id=order.id, event_name=event)
            return 0
        return hub.publish(event, order_payload(order), order.branch_id)

    @staticmethod
    async def get_order(db: AsyncSession, order_id: str):
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise NotFound("Order not found")
        return order

    @staticmethod
    async def list_orders(db: AsyncSession, status: str | None = None, branch_id: str | None = None):
        statuses = [status] if status else None
        return await OrderRepository.list_orders(db, statuses, branch_id)

    @staticmethod
    async def list_web_orders(db: AsyncSession, branch_id: str | None = None):
        return await OrderRepository.list_orders(db, [PENDING], branch_id, channel=WEB)

    @staticmethod
    async def accept(db: AsyncSession, order_id: str):
        """
        pending -> active for web orders. Exactly one caller wins the
        conditional update; everyone else gets the already-active order back.
        """
        changed = await OrderRepository.transition(db, order_id, (PENDING,), ACTIVE, channel=WEB)
        await db.commit()
        order = await OrderService.get_order(db, order_id)
        if changed:
            pos_order_accept_total.labels(outcome="transitioned").inc()
            logger.info("order_accepted", order_id=order.id, order_number=order.order_number)
            OrderService.broadcast(ORDER_STATUS_CHANGED, order)
            return order
        if order.channel != WEB:
            raise InvalidState("Only web orders can be accepted")
        if order.status == ACTIVE:
            pos_order_accept_total.labels(outcome="noop").inc()
            logger.info("order_accept_noop", order_id=order.id)
            return order
        raise InvalidState(f"Cannot accept an order in status '{order.status}'")

    @staticmethod
    async def reject(db: AsyncSession, order_id: str):
        changed = await OrderRepository.transition(db, order_id, (PENDING,), CANCELLED, channel=WEB)
        await db.commit()
        order = await OrderService.get_order(db, order_id)
        if changed:
            logger.info("order_rejected", order_id=order.id)
            OrderService.broadcast(ORDER_STATUS_CHANGED, order)
            return order
        if order.channel != WEB:
            raise InvalidState("Only web orders can be rejected")
        if order.status == CANCELLED:
            return order
        raise InvalidState(f"Cannot reject an order in status '{order.status}'")

    @staticmethod
    async def cancel(db: AsyncSession, order_id: str):
        changed = await OrderRepository.transition(db, order_id, (PENDING, ACTIVE), CANCELLED)
        await db.commit()
        order = await OrderService.get_order(db, order_id)
        if changed:
            logger.info("order_cancelled", order_id=order.id)
            OrderService.broadcast(ORDER_STATUS_CHANGED, order)
            return order
        if order.status == CANCELLED:
            return order
        if order.status == DRAFT:
            raise InvalidState("Drafts are deleted, not cancelled")
        raise InvalidState(f"Cannot cancel an order in status '{order.status}'")

    @staticmethod
    async def update_items(db: AsyncSession, order_id: str, data: ItemsUpdate):
        order = await OrderService.get_order(db, order_id)
        OrderService._check_editable(order)
        if not data.items:
            raise ValidationError("An order needs at least one line item")
        items, total = await build_items(db, data.items)
        paid, due, payment_status = settle_payment(total, order.paid_amount)
        # Lands only on the row as read: still open, stock uncommitted, lines unchanged
        changed = await OrderRepository.guarded_update(
            db, order_id, (PENDING, ACTIVE), Order.stock_committed.is_(False),
            version=order.version,
            total=total, paid_amount=paid, due_amount=due, payment_status=payment_status,
        )
        if not changed:
            await db.rollback()
            current = await OrderService.get_order(db, order_id)
            OrderService._check_editable(current)
            raise Conflict("Order was changed by another terminal; reload it before editing")
        await OrderRepository.replace_items(db, order_id, items)
        await db.commit()
        logger.info("order_items_updated", order_id=order_id, lines=len(items), total=str(total))
        return await OrderService.get_order(db, order_id)

    @staticmethod
    def _check_editable(order: Order) -> None:
        if order.status not in (PENDING, ACTIVE):
            raise InvalidState(f"Cannot edit items of an order in status '{order.status}'")
        if order.stock_committed:
            raise InvalidState("Stock for this order is already committed")

    @staticmethod
    async def complete(db: AsyncSession, order_id: str, payment: PaymentDetails):
        """Payment finalization of an active order: active -> completed."""
        order = await OrderService.get_order(db, order_id)
        if order.status == COMPLETED:
            raise Conflict("Order is already completed")
        if order.status != ACTIVE:
            raise InvalidState(f"Cannot complete an order in status '{order.status}'")
        if payment.paid_amount < order.paid_amount:
            raise ValidationError("Paid amount cannot go below what was already received")
        return await OrderService.finalize(db, order, payment, (ACTIVE,), COMPLETED)

    @staticmethod
    async def finalize(db: AsyncSession, order: Order, payment: PaymentDetails, from_statuses, to_status=None):
        """
        Fix the payment split and commit stock in one transaction.

        Validation runs before anything is written, so a rejected call leaves
        no trace. The status write is conditional: losing it to a concurrent
        finalize is a Conflict, never a second stock decrement.
        """
        paid, due, payment_status = settle_payment(order.total, payment.paid_amount)
        customer_id = payment.customer_id or order.customer_id
        if payment_status == DUE and not customer_id:
            raise ValidationError("A due order must be linked to a customer")
        if to_status is None:
            to_status = COMPLETED if payment_status == PAID else ACTIVE

        now = datetime.now(timezone.utc)
        values = dict(
            paid_amount=paid,
            due_amount=due,
            payment_status=payment_status,
            payment_method=payment.payment_method or order.payment_method,
            customer_id=customer_id,
            stock_committed=True,
        )
        if to_status == COMPLETED:
            values["completed_at"] = now
        order_id = order.id
        stock_already_committed = order.stock_committed
        lines = [(item.product_id, item.quantity) for item in order.items]
        # The version pins the lines and total settled above; any concurrent write makes this a no-op
        changed = await OrderRepository.transition(db, order_id, from_statuses, to_status,
                                                   version=order.version, **values)
        if not changed:
            await db.rollback()
            raise Conflict("Order was finalized or edited by another request")
        if not stock_already_committed:
            for product_id, quantity in lines:
                await ProductRepository.decrement_stock(db, product_id, quantity)
        await db.commit()

        pos_draft_finalize_total.labels(payment_status=payment_status).inc()
        logger.info("order_finalized", order_id=order_id, status=to_status, payment_status=payment_status,
                    paid=str(paid), due=str(due))
        return await OrderService.get_order(db, order_id)
