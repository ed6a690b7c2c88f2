from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from shared.config.database import get_db
from shared.security.dependencies import verify_terminal_key
from .schemas import ProductCreate, ProductResponse
from .service import ProductService

router = APIRouter(dependencies=[Depends(verify_terminal_key)])
public_router = APIRouter()  # For any public endpoints (e.g. health check)

@public_router.get("/health")
async def health_check():
    return {"service": "product", "status": "running"}


@public_router.get("/public", response_model=list[ProductResponse])
async def list_public_products(
    branch_id: str | None = Query(default=None, alias="branchId"),
    db: AsyncSession = Depends(get_db)
):
    """Catalogue for the web storefront."""
    return await ProductService.list_products(db, branch_id=branch_id, limit=500)


@router.post("/", response_model=ProductResponse, status_code=201)
async def create_product(
    product: ProductCreate,
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.create_product(db, product)

@router.get("/", response_model=list[ProductResponse])
async def list_products(
    search: str | None = Query(default=None),
    branch_id: str | None = Query(default=None, alias="branchId"),
    exclude_order_id: str | None = Query(default=None, alias="excludeOrderId"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.list_products(db, search, branch_id, limit, offset, exclude_order_id)

@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    exclude_order_id: str | None = Query(default=None, alias="excludeOrderId"),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.get_product(db, product_id, exclude_order_id)
