from fastapi import APIRouter, Depends

from accessory_admin.core.db import get_db
from accessory_admin.core.repositories import SettingsRepository
from accessory_admin.core.schemas import AppSettingsUpdate

router = APIRouter(prefix="/settings")


@router.get("")
async def get_settings(db=Depends(get_db)):
    return await SettingsRepository(db).get_settings()


@router.put("")
async def update_settings(body: AppSettingsUpdate, db=Depends(get_db)):
    settings = SettingsRepository(db)
    await settings.save_settings(body.model_dump(exclude_none=True))
    return await settings.get_settings()
