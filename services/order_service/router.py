from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from shared.config.database import get_db
from shared.security import PUBLIC_ORDER_RATE_LIMIT, limiter
from shared.security.dependencies import TerminalContext, get_terminal_context, verify_terminal_key
from .drafts import DraftService
from .schemas import (
    DraftSave, ItemsUpdate, OrderCreate, OrderResponse, PaymentDetails, WebOrderCreate,
)
from .service import OrderService

# Every staff endpoint needs the terminal key
router = APIRouter(dependencies=[Depends(verify_terminal_key)])
public_router = APIRouter()

@public_router.get("/health")
async def health_check():
    return {"service": "order", "status": "running"}


# Customer-facing storefront: no terminal key, rate limited instead
@public_router.post("/public", response_model=OrderResponse, status_code=201)
@limiter.limit(PUBLIC_ORDER_RATE_LIMIT)
async def create_web_order(request: Request, payload: WebOrderCreate, db: AsyncSession = Depends(get_db)):
    return await OrderService.create_web_order(db, payload)


@router.post("/", response_model=OrderResponse, status_code=201)
async def create_order(order: OrderCreate, db: AsyncSession = Depends(get_db)):
    return await OrderService.create_order(db, order)

@router.get("/", response_model=list[OrderResponse])
async def list_orders(
    status: str | None = Query(default=None),
    branch_id: str | None = Query(default=None, alias="branchId"),
    ctx: TerminalContext = Depends(get_terminal_context),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.list_orders(db, status, branch_id or ctx.branch_id)

@router.get("/web", response_model=list[OrderResponse])
async def list_web_orders(
    branch_id: str | None = Query(default=None, alias="branchId"),
    ctx: TerminalContext = Depends(get_terminal_context),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.list_web_orders(db, branch_id or ctx.branch_id)


# --- DRAFTS ---

@router.get("/drafts", response_model=list[OrderResponse])
async def list_drafts(
    branch_id: str | None = Query(default=None, alias="branchId"),
    ctx: TerminalContext = Depends(get_terminal_context),
    db: AsyncSession = Depends(get_db),
):
    return await DraftService.list_drafts(db, branch_id or ctx.branch_id)

@router.post("/drafts", response_model=OrderResponse, status_code=201)
async def create_draft(payload: DraftSave, db: AsyncSession = Depends(get_db)):
    payload.id = None
    return await DraftService.save_draft(db, payload)

@router.get("/drafts/{order_id}", response_model=OrderResponse)
async def resume_draft(order_id: str, db: AsyncSession = Depends(get_db)):
    return await DraftService.resume_draft(db, order_id)

@router.patch("/drafts/{order_id}", response_model=OrderResponse)
async def update_draft(order_id: str, payload: DraftSave, db: AsyncSession = Depends(get_db)):
    payload.id = order_id
    return await DraftService.save_draft(db, payload)

@router.delete("/drafts/{order_id}", status_code=204)
async def delete_draft(order_id: str, db: AsyncSession = Depends(get_db)):
    await DraftService.delete_draft(db, order_id)
    return Response(status_code=204)

@router.post("/drafts/{order_id}/finalize", response_model=OrderResponse)
async def finalize_draft(order_id: str, payment: PaymentDetails, db: AsyncSession = Depends(get_db)):
    return await DraftService.finalize_draft(db, order_id, payment)


# --- LIVE ORDERS ---

@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, db: AsyncSession = Depends(get_db)):
    return await OrderService.get_order(db, order_id)

# Safe to retry: accepting an active order returns it unchanged
@router.patch("/{order_id}/accept", response_model=OrderResponse)
async def accept_order(order_id: str, db: AsyncSession = Depends(get_db)):
    return await OrderService.accept(db, order_id)

@router.patch("/{order_id}/reject", response_model=OrderResponse)
async def reject_order(order_id: str, db: AsyncSession = Depends(get_db)):
    return await OrderService.reject(db, order_id)

@router.patch("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, db: AsyncSession = Depends(get_db)):
    return await OrderService.cancel(db, order_id)

@router.patch("/{order_id}/items", response_model=OrderResponse)
async def update_order_items(order_id: str, payload: ItemsUpdate, db: AsyncSession = Depends(get_db)):
    return await OrderService.update_items(db, order_id, payload)

@router.post("/{order_id}/complete", response_model=OrderResponse)
async def complete_order(order_id: str, payment: PaymentDetails, db: AsyncSession = Depends(get_db)):
    return await OrderService.complete(db, order_id, payment)
