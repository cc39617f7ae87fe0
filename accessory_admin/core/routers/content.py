from typing import List, Type

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from accessory_admin.core.db import get_db
from accessory_admin.core.repositories import ContentRepository, PolicyRepository, utcnow
from accessory_admin.core.schemas import (
    FAQ,
    AccessoryCategory,
    Banner,
    BannerPosition,
    CarModel,
    DataProtectionPolicy,
    LegalContent,
)

router = APIRouter(prefix="/content")

DATA_PROTECTION = "dataProtection"


def _register_crud(path: str, collection_name: str, model: Type[BaseModel], label: str) -> None:
    """List/get/create/replace/delete routes for one content collection."""

    def repo(db=Depends(get_db)) -> ContentRepository:
        return ContentRepository(db, collection_name, f"{label} not found")

    @router.get(f"/{path}", name=f"list_{path}")
    async def list_items(items: ContentRepository = Depends(repo)):
        return await items.fetch()

    @router.get(f"/{path}/{{item_id}}", name=f"get_{path}")
    async def get_item(item_id: str, items: ContentRepository = Depends(repo)):
        return await items.get(item_id)

    @router.post(f"/{path}", status_code=201, name=f"create_{path}")
    async def create_item(body: model, items: ContentRepository = Depends(repo)):
        item_id = await items.create({**body.model_dump(), "createdAt": utcnow()})
        return {"id": item_id}

    @router.put(f"/{path}/{{item_id}}", name=f"update_{path}")
    async def update_item(item_id: str, body: model, items: ContentRepository = Depends(repo)):
        await items.update(item_id, {**body.model_dump(), "updatedAt": utcnow()})
        return {"id": item_id}

    @router.delete(f"/{path}/{{item_id}}", name=f"delete_{path}")
    async def delete_item(item_id: str, items: ContentRepository = Depends(repo)):
        await items.delete(item_id)
        return {"ok": True}


# reorder must be registered ahead of /banners/{item_id}
@router.put("/banners/order")
async def reorder_banners(positions: List[BannerPosition], db=Depends(get_db)):
    await ContentRepository(db, "banners", "Banner not found").reorder(
        [(p.id, p.order) for p in positions]
    )
    return {"ok": True}


_register_crud("banners", "banners", Banner, "Banner")
_register_crud("faqs", "faqs", FAQ, "FAQ")
_register_crud("legal", "legalContents", LegalContent, "Legal content")
_register_crud("accessory-categories", "accessoryCategories", AccessoryCategory, "Accessory category")
_register_crud("car-models", "carModels", CarModel, "Car model")


@router.get("/data-protection")
async def get_data_protection_policy(db=Depends(get_db)):
    return await PolicyRepository(db).get_policy(DATA_PROTECTION, "Data Protection Policy")


@router.put("/data-protection")
async def update_data_protection_policy(body: DataProtectionPolicy, db=Depends(get_db)):
    await PolicyRepository(db).put_policy(DATA_PROTECTION, body.model_dump())
    return {"ok": True}
