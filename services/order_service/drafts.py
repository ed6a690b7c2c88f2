"""
Draft Order Store.

Drafts are ordinary orders in `draft` status: editable, deletable, invisible
to fulfilment and never broadcast. Every operation here refuses to touch an
order that is not a draft.
"""
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.exceptions import Conflict, InvalidState, NotFound, ValidationError
from .models import Order, ACTIVE, COMPLETED, DRAFT, IN_STORE
from .pricing import build_items, payment_status_for
from .repository import OrderRepository
from .schemas import DraftSave, PaymentDetails
from .service import OrderService

logger = structlog.get_logger(__name__)


class DraftService:
    @staticmethod
    async def save_draft(db: AsyncSession, data: DraftSave):
        # Abandoned empty carts are not worth a row
        if not data.items:
            raise ValidationError("A draft needs at least one line item")
        draft = await DraftService.resume_draft(db, data.id) if data.id else None
        items, total = await build_items(db, data.items)
        fields = dict(
            branch_id=data.branch_id,
            table_id=data.table_id,
            dining_option=data.dining_option,
            customer_id=data.customer_id,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            total=total,
            paid_amount=0,
            due_amount=total,
            payment_status=payment_status_for(0, total),
        )

        if draft is None:
            draft = Order(
                order_number=await OrderRepository.next_order_number(db),
                channel=IN_STORE,
                status=DRAFT,
                items=items,
                **fields,
            )
            await OrderRepository.add_order(db, draft)
        else:
            # Lands only if nobody finalized or re-saved the draft since it was read
            draft_id = draft.id
            changed = await OrderRepository.guarded_update(db, draft_id, (DRAFT,), version=draft.version, **fields)
            if not changed:
                await db.rollback()
                await DraftService._raise_lost_save(db, draft_id)
            await OrderRepository.replace_items(db, draft.id, items)
        await db.commit()
        logger.info("draft_saved", order_id=draft.id, order_number=draft.order_number,
                    lines=len(items), total=str(total))
        return await OrderRepository.get_order(db, draft.id)

    @staticmethod
    async def _raise_lost_save(db: AsyncSession, order_id: str):
        current = await OrderRepository.get_order(db, order_id)
        if not current or current.status != DRAFT:
            logger.warning("draft_save_lost_to_finalize", order_id=order_id)
            raise NotFound("Draft not found")
        raise Conflict("Draft was changed by another terminal; reload it before saving")

    @staticmethod
    async def list_drafts(db: AsyncSession, branch_id: str | None = None):
        return await OrderRepository.list_orders(db, [DRAFT], branch_id)

    @staticmethod
    async def resume_draft(db: AsyncSession, order_id: str):
        order = await OrderRepository.get_order(db, order_id)
        if not order or order.status != DRAFT:
            raise NotFound("Draft not found")
        return order

    @staticmethod
    async def delete_draft(db: AsyncSession, order_id: str) -> None:
        deleted = await OrderRepository.delete_draft(db, order_id)
        if not deleted:
            await db.rollback()
            raise NotFound("Draft not found")
        await db.commit()
        logger.info("draft_deleted", order_id=order_id)

    @staticmethod
    async def finalize_draft(db: AsyncSession, order_id: str, payment: PaymentDetails):
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise NotFound("Draft not found")
        if order.status in (ACTIVE, COMPLETED):
            # A retried finalize must never decrement stock twice
            raise Conflict(f"Order {order.order_number} is already finalized ({order.status})")
        if order.status != DRAFT:
            raise InvalidState(f"Cannot finalize an order in status '{order.status}'")
        return await OrderService.finalize(db, order, payment, (DRAFT,))
