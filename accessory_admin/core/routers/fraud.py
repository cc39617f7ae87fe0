from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException

from accessory_admin.core.db import get_db
from accessory_admin.core.fraud import get_recent_fraud_alerts, get_user_activity, log_user_activity
from accessory_admin.core.reporting import ReportUnavailable
from accessory_admin.core.schemas import ActivityLogCreate

router = APIRouter(prefix="/fraud")


@router.get("/alerts")
async def recent_alerts(limit: int = 5, db=Depends(get_db)) -> Dict[str, Any]:
    try:
        return await get_recent_fraud_alerts(db, limit)
    except ReportUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/activity")
async def record_activity(body: ActivityLogCreate, db=Depends(get_db)):
    """Log one user action and run the anomaly rules; ``alert`` is set when one fired."""
    return await log_user_activity(db, body.userId, body.action, body.details)


@router.get("/activity/{user_id}")
async def user_activity(user_id: str, limit: int = 10, db=Depends(get_db)) -> List[Dict[str, Any]]:
    return await get_user_activity(db, user_id, limit)
