from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from shared.exceptions import NotFound
from .models import Product
from .repository import ProductRepository
from .schemas import ProductCreate, ProductResponse
from .stock import available_stock, is_out_of_stock

class ProductService:

    @staticmethod
    async def create_product(db: AsyncSession, data: ProductCreate):
        product = Product(
            name=data.name,
            price=data.price,
            quantity=data.quantity,
            unit=data.unit,
            category=data.category,
            branch_id=data.branch_id,
            # JSON column: keep prices as decimal strings
            size_prices={k: str(v) for k, v in data.size_prices.items()} if data.size_prices else None,
        )
        product = await ProductRepository.create_product(db, product)
        return ProductService.to_response(product, [])

    @staticmethod
    async def list_products(db: AsyncSession, search: str | None = None, branch_id: str | None = None,
                            limit: int = 50, offset: int = 0, exclude_order_id: str | None = None):
        products = await ProductRepository.list_products(db, search, branch_id, limit, offset)
        reservations = await ProductRepository.open_reservations(db, [p.id for p in products])
        return [
            ProductService.to_response(p, reservations.get(p.id, []), exclude_order_id)
            for p in products
        ]

    @staticmethod
    async def get_product(db: AsyncSession, product_id: str, exclude_order_id: str | None = None):
        product = await ProductRepository.get_product_by_id(db, product_id)
        if not product:
            raise NotFound("Product not found")
        reservations = await ProductRepository.open_reservations(db, [product.id])
        return ProductService.to_response(product, reservations.get(product.id, []), exclude_order_id)

    @staticmethod
    async def available_stock(db: AsyncSession, product_id: str, exclude_order_id: str | None = None) -> Decimal:
        return (await ProductService.get_product(db, product_id, exclude_order_id)).available_stock

    @staticmethod
    def to_response(product: Product, reservations, exclude_order_id: str | None = None) -> ProductResponse:
        available = available_stock(product.quantity, reservations, exclude_order_id)
        return ProductResponse(
            id=product.id,
            name=product.name,
            price=product.price,
            quantity=product.quantity,
            available_stock=available,
            out_of_stock=is_out_of_stock(available),
            unit=product.unit,
            category=product.category,
            branch_id=product.branch_id,
            size_prices=product.size_prices,
        )
