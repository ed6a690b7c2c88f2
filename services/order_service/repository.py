from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from .models import Order, OrderItem, OrderCounter, DRAFT

ORDER_COUNTER_ID = "orders"

# INSERT ... ON CONFLICT DO NOTHING per backend
_UPSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}

class OrderRepository:
    @staticmethod
    async def _bump_counter(db: AsyncSession):
        result = await db.execute(
            update(OrderCounter)
            .where(OrderCounter.id == ORDER_COUNTER_ID)
            .values(value=OrderCounter.value + 1)
            .returning(OrderCounter.value)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def next_order_number(db: AsyncSession) -> int:
        """Atomically bump the installation-wide counter inside the caller's transaction."""
        value = await OrderRepository._bump_counter(db)
        if value is None:
            # First order ever: seed the row, tolerating a concurrent first order doing the same
            insert = _UPSERTS[db.bind.dialect.name]
            await db.execute(
                insert(OrderCounter)
                .values(id=ORDER_COUNTER_ID, value=0)
                .on_conflict_do_nothing(index_elements=["id"])
            )
            value = await OrderRepository._bump_counter(db)
        return value

    @staticmethod
    async def add_order(db: AsyncSession, order: Order):
        db.add(order)
        await db.flush()
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: str):
        # populate_existing: conditional updates bypass the identity map
        result = await db.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def list_orders(db: AsyncSession, statuses=None, branch_id: str | None = None,
                          channel: str | None = None):
        stmt = select(Order)
        if statuses:
            stmt = stmt.where(Order.status.in_(statuses))
        if branch_id:
            # Orders without a branch belong to every branch, as on the realtime channel
            stmt = stmt.where(or_(Order.branch_id == branch_id, Order.branch_id.is_(None)))
        if channel:
            stmt = stmt.where(Order.channel == channel)
        # Most recent work first
        stmt = stmt.order_by(Order.created_at.desc(), Order.order_number.desc())
        result = await db.execute(stmt)
        return result.scalars().all()

    @staticmethod
    async def guarded_update(db: AsyncSession, order_id: str, statuses, *criteria,
                             version: int | None = None, **values) -> int:
        """
        "update <values> where status in <statuses> [and version = <version>]".

        With a version the write only lands on the exact row the caller read,
        and bumps the version for the next reader. Returns rows changed (0 or 1).
        No commit.
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status.in_(statuses), *criteria)
            .execution_options(synchronize_session=False)
        )
        if version is not None:
            stmt = stmt.where(Order.version == version)
            values["version"] = version + 1
        result = await db.execute(stmt.values(updated_at=datetime.now(timezone.utc), **values))
        return result.rowcount

    @staticmethod
    async def transition(db: AsyncSession, order_id: str, from_statuses, to_status: str,
                         channel: str | None = None, version: int | None = None, **values) -> int:
        """Conditional status write: "set <to_status> where status in <from_statuses>"."""
        criteria = (Order.channel == channel,) if channel else ()
        return await OrderRepository.guarded_update(
            db, order_id, from_statuses, *criteria, version=version, status=to_status, **values
        )

    @staticmethod
    async def replace_items(db: AsyncSession, order_id: str, items) -> None:
        """Swap the order's lines. Only call after a guarded update won the row."""
        await db.execute(
            delete(OrderItem)
            .where(OrderItem.order_id == order_id)
            .execution_options(synchronize_session=False)
        )
        for item in items:
            item.order_id = order_id
            db.add(item)
        await db.flush()

    @staticmethod
    async def delete_draft(db: AsyncSession, order_id: str) -> int:
        draft_ids = select(Order.id).where(Order.id == order_id, Order.status == DRAFT)
        # Lines first so the foreign key never points at a missing order
        await db.execute(
            delete(OrderItem)
            .where(OrderItem.order_id.in_(draft_ids))
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(
            delete(Order)
            .where(Order.id == order_id, Order.status == DRAFT)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
