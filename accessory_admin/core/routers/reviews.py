from typing import Optional

from fastapi import APIRouter, Depends

from accessory_admin.auth.session_tokens import AdminSession, require_admin
from accessory_admin.core.db import get_db
from accessory_admin.core.repositories import ReviewRepository
from accessory_admin.core.schemas import ReviewModeration, ReviewStatus

router = APIRouter(prefix="/reviews")


@router.get("")
async def list_reviews(status: Optional[ReviewStatus] = None, db=Depends(get_db)):
    return await ReviewRepository(db).list_reviews(status)


@router.get("/moderation-queue")
async def moderation_queue(db=Depends(get_db)):
    """Reviews still waiting on a decision: pending and flagged."""
    return await ReviewRepository(db).moderation_queue()


@router.patch("/{review_id}/status")
async def moderate_review(
    review_id: str,
    body: ReviewModeration,
    session: AdminSession = Depends(require_admin),
    db=Depends(get_db),
):
    changes = await ReviewRepository(db).set_status(review_id, body.status, body.reason, session.uid)
    return {"id": review_id, **changes}
