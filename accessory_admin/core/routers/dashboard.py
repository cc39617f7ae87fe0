from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from accessory_admin.core.db import get_db
from accessory_admin.core.reporting import (
    ReportUnavailable,
    get_dashboard_stats,
    get_order_status_breakdown,
    get_top_products,
    top_customers,
)
from accessory_admin.core.repositories import OrderRepository, ProductRepository

router = APIRouter(prefix="/dashboard")


@router.get("/stats")
async def dashboard_stats(db=Depends(get_db)) -> Dict[str, Any]:
    try:
        return await get_dashboard_stats(db)
    except ReportUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/order-status")
async def order_status(db=Depends(get_db)) -> Dict[str, Any]:
    try:
        return await get_order_status_breakdown(db)
    except ReportUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/top-products")
async def top_products(limit: int = 5, db=Depends(get_db)) -> Dict[str, Any]:
    try:
        return await get_top_products(db, limit)
    except ReportUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/recent-orders")
async def recent_orders(limit: int = 5, db=Depends(get_db)):
    orders = await OrderRepository(db).list_recent(limit)
    return [
        {
            "id": o["id"],
            "orderNumber": o["orderNumber"],
            "customerName": o["customerName"],
            "status": o.get("status") or "pending",
            "total": o.get("total") or 0,
            "itemsCount": o["itemsCount"],
            "createdAt": o.get("createdAt"),
        }
        for o in orders
    ]


@router.get("/top-customers")
async def dashboard_top_customers(limit: int = 10, db=Depends(get_db)):
    return top_customers(await OrderRepository(db).fetch(), limit)


@router.get("/low-stock")
async def low_stock(threshold: int = 10, db=Depends(get_db)):
    return await ProductRepository(db).low_stock(threshold)
