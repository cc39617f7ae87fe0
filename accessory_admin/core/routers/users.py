from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from accessory_admin.core.db import get_db
from accessory_admin.core.repositories import OrderRepository, UserRepository
from accessory_admin.core.schemas import ApprovalStatus, SellerApprovalUpdate, UserActiveUpdate, UserRole

router = APIRouter(prefix="/users")


@router.get("")
async def list_users(
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    approval: Optional[ApprovalStatus] = None,
    db=Depends(get_db),
):
    return await UserRepository(db).list_users(role=role, is_active=is_active, approval=approval)


@router.get("/summary")
async def users_summary(db=Depends(get_db)):
    return await UserRepository(db).summary()


@router.get("/{user_id}")
async def get_user(user_id: str, db=Depends(get_db)):
    """Profile plus order count and lifetime spend."""
    user = await UserRepository(db).get(user_id)
    orders = await OrderRepository(db).list_for_customer(user_id)
    user["ordersCount"] = len(orders)
    user["totalSpent"] = sum(float(o.get("total") or 0) for o in orders)
    return user


@router.get("/{user_id}/orders")
async def get_user_orders(user_id: str, db=Depends(get_db)):
    return await OrderRepository(db).list_for_customer(user_id)


@router.patch("/{user_id}/active")
async def update_user_active(user_id: str, body: UserActiveUpdate, db=Depends(get_db)):
    await UserRepository(db).set_active(user_id, body.isActive)
    return {"id": user_id, "isActive": body.isActive}


@router.patch("/{user_id}/approval")
async def update_seller_approval(user_id: str, body: SellerApprovalUpdate, db=Depends(get_db)):
    users = UserRepository(db)
    user = await users.get(user_id)
    if user.get("role") != "seller":
        raise HTTPException(status_code=400, detail="Approval applies to sellers only")
    await users.set_approval(user_id, body.approvalStatus)
    return {"id": user_id, "approvalStatus": body.approvalStatus}
