import logging

from fastapi import APIRouter, Depends, HTTPException

from accessory_admin.auth.session_tokens import AdminSession, require_admin
from accessory_admin.core.db import get_db
from accessory_admin.core.repositories import PaymentRepository
from accessory_admin.core.schemas import RefundRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments")


@router.get("")
async def list_payments(db=Depends(get_db)):
    return await PaymentRepository(db).fetch()


@router.get("/{payment_id}")
async def get_payment(payment_id: str, db=Depends(get_db)):
    return await PaymentRepository(db).get(payment_id)


@router.post("/{payment_id}/refund")
async def refund_payment(
    payment_id: str,
    body: RefundRequest,
    session: AdminSession = Depends(require_admin),
    db=Depends(get_db),
):
    """Full refund by default; a smaller ``amount`` records a partial refund."""
    payments = PaymentRepository(db)
    payment = await payments.get(payment_id)
    if payment.get("status") == "refunded":
        raise HTTPException(status_code=400, detail="Payment already refunded")
    paid = float(payment.get("amount") or 0)
    amount = body.amount if body.amount is not None else paid
    if amount > paid:
        raise HTTPException(status_code=400, detail="Refund exceeds the payment amount")

    changes = await payments.refund(payment_id, amount, body.reason, session.uid)
    logger.info("Refunded %.2f on payment %s (%s)", amount, payment_id, changes["refundStatus"])
    return {"id": payment_id, **changes}
