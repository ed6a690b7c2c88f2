from collections import defaultdict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_
from services.order_service.models import Order, OrderItem, OPEN_STATUSES
from .models import Product

class ProductRepository:

    @staticmethod
    async def create_product(db: AsyncSession, product: Product):
        db.add(product)
        await db.commit()
        await db.refresh(product)
        return product

    @staticmethod
    async def list_products(db: AsyncSession, search: str | None = None, branch_id: str | None = None,
                            limit: int = 50, offset: int = 0):
        stmt = select(Product)
        if search:
            stmt = stmt.where(Product.name.ilike(f"%{search.strip()}%"))
        if branch_id:
            # Products without a branch are shared by every branch
            stmt = stmt.where(or_(Product.branch_id == branch_id, Product.branch_id.is_(None)))
        stmt = stmt.order_by(Product.name, Product.id).limit(limit).offset(offset)
        result = await db.execute(stmt)
        return result.scalars().all()

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: str):
        result = await db.execute(select(Product).where(Product.id == product_id))
        return result.scalars().first()

    @staticmethod
    async def get_products_by_ids(db: AsyncSession, product_ids):
        if not product_ids:
            return {}
        result = await db.execute(select(Product).where(Product.id.in_(list(product_ids))))
        return {p.id: p for p in result.scalars().all()}

    @staticmethod
    async def open_reservations(db: AsyncSession, product_ids):
        """product_id -> [(order_id, quantity)] for lines of open orders whose stock is not committed."""
        reservations = defaultdict(list)
        if not product_ids:
            return reservations
        stmt = (
            select(OrderItem.product_id, OrderItem.order_id, OrderItem.quantity)
            .join(Order, Order.id == OrderItem.order_id)
            .where(
                Order.status.in_(OPEN_STATUSES),
                Order.stock_committed.is_(False),
                OrderItem.product_id.in_(list(product_ids)),
            )
        )
        for product_id, order_id, quantity in (await db.execute(stmt)).all():
            reservations[product_id].append((order_id, quantity))
        return reservations

    @staticmethod
    async def decrement_stock(db: AsyncSession, product_id: str, quantity):
        """Decrement on-hand quantity in the caller's transaction. No commit."""
        await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=Product.quantity - quantity)
        )
