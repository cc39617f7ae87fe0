import logging
from typing import Optional

from fastapi import APIRouter, Depends

from accessory_admin.core.db import get_db
from accessory_admin.core.repositories import ProductRepository
from accessory_admin.core.schemas import (
    BulkProductUpdate,
    ProductActiveUpdate,
    ProductStatus,
    ProductStatusUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products")


@router.get("")
async def list_products(
    category: Optional[str] = None,
    status: Optional[ProductStatus] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    db=Depends(get_db),
):
    return await ProductRepository(db).list_products(
        category=category, status=status, is_active=is_active, search=search
    )


@router.get("/categories")
async def product_categories(db=Depends(get_db)):
    return await ProductRepository(db).categories()


@router.post("/bulk")
async def bulk_update_products(body: BulkProductUpdate, db=Depends(get_db)):
    changes = body.model_dump(exclude_none=True, exclude={"productIds"})
    ids = await ProductRepository(db).bulk_update(body.productIds, changes)
    logger.info("Bulk product update %s on %d products", changes, len(ids))
    return {"updated": ids}


@router.get("/{product_id}")
async def get_product(product_id: str, db=Depends(get_db)):
    return await ProductRepository(db).get(product_id)


@router.patch("/{product_id}/status")
async def update_product_status(product_id: str, body: ProductStatusUpdate, db=Depends(get_db)):
    """Moderation decision; ``removed`` also takes the listing offline."""
    changes = await ProductRepository(db).set_status(product_id, body.status, body.reason)
    return {"id": product_id, "status": changes["status"], "isActive": changes.get("isActive")}


@router.patch("/{product_id}/active")
async def update_product_active(product_id: str, body: ProductActiveUpdate, db=Depends(get_db)):
    await ProductRepository(db).set_active(product_id, body.isActive)
    return {"id": product_id, "isActive": body.isActive}
