import logging
from typing import Optional

from fastapi import APIRouter, Depends

from accessory_admin.auth.session_tokens import AdminSession, require_admin
from accessory_admin.core.db import get_db
from accessory_admin.core.reporting import order_stats
from accessory_admin.core.repositories import OrderRepository
from accessory_admin.core.schemas import ComplaintCreate, ComplaintResolve, OrderStatus, OrderStatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders")


@router.get("")
async def list_orders(
    status: Optional[OrderStatus] = None,
    search: Optional[str] = None,
    db=Depends(get_db),
):
    """Newest first; ``search`` matches order number, customer name or email."""
    return await OrderRepository(db).list_orders(status=status, search=search)


@router.get("/stats")
async def get_order_stats(db=Depends(get_db)):
    return order_stats(await OrderRepository(db).fetch())


@router.get("/{order_id}")
async def get_order(order_id: str, db=Depends(get_db)):
    return await OrderRepository(db).get(order_id)


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: str,
    body: OrderStatusUpdate,
    session: AdminSession = Depends(require_admin),
    db=Depends(get_db),
):
    entry = await OrderRepository(db).update_status(order_id, body.status, session.uid, body.note)
    logger.info("Order %s moved to %s by %s", order_id, body.status, session.uid)
    return {"id": order_id, "statusUpdate": entry}


@router.post("/{order_id}/complaints")
async def add_complaint(
    order_id: str,
    body: ComplaintCreate,
    session: AdminSession = Depends(require_admin),
    db=Depends(get_db),
):
    complaint = body.model_dump(exclude_none=True)
    complaint.setdefault("raisedBy", session.uid)
    record = await OrderRepository(db).add_complaint(order_id, complaint)
    return {"id": order_id, "complaint": record}


@router.post("/{order_id}/complaints/{index}/resolve")
async def resolve_complaint(
    order_id: str,
    index: int,
    body: ComplaintResolve,
    session: AdminSession = Depends(require_admin),
    db=Depends(get_db),
):
    record = await OrderRepository(db).resolve_complaint(order_id, index, body.resolution, session.uid)
    return {"id": order_id, "complaint": record}
