from fastapi import APIRouter, Depends

from accessory_admin.core.db import get_db

router = APIRouter()


@router.get("/healthz/db")
async def healthz_db(db=Depends(get_db)):
    # one-document read so the health check actually validates Firestore access
    async for _ in db.collection("orders").limit(1).stream():
        break
    return {"ok": True}
