import base64
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request
from pydantic import ValidationError

from accessory_admin.core import config
from accessory_admin.core.db import get_db
from accessory_admin.core.reporting import format_currency
from accessory_admin.core.repositories import NotificationRepository, ProductRepository
from accessory_admin.core.schemas import MessageCreatedEvent, OrderCreatedEvent, OrderItem
from accessory_admin.integrations.notify.notify_client import post_notification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/triggers")

ADMIN_FEED = "admins"
PREVIEW_CHARS = 100


def verify_signature(body: bytes, hmac_header: str, secret: str) -> bool:
    """
    Verify the base64 HMAC-SHA256 signature of a trigger body.

    Args:
        body: Raw request body bytes
        hmac_header: X-Trigger-Hmac-Sha256 header value
        secret: Shared trigger secret
    """
    computed_hmac = base64.b64encode(
        hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    ).decode("utf-8")
    return hmac.compare_digest(computed_hmac, hmac_header)


async def _signed_json(request: Request, signature: Optional[str]) -> Dict[str, Any]:
    body = await request.body()
    if not config.TRIGGER_SECRET or not signature:
        raise HTTPException(401, "Invalid trigger signature")
    if not verify_signature(body, signature.strip(), config.TRIGGER_SECRET):
        raise HTTPException(401, "Invalid trigger signature")
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(400, "Invalid JSON payload")


def _parse(model, payload: Any):
    if not isinstance(payload, dict):
        raise HTTPException(400, "Trigger payload must be a JSON object")
    try:
        return model(**payload)
    except ValidationError as e:
        raise HTTPException(422, e.errors(include_url=False, include_context=False))


async def _seller_ids(db, items: List[Dict[str, Any]]) -> List[str]:
    products = ProductRepository(db)
    sellers: List[str] = []
    for raw in items:
        try:
            item = OrderItem(**raw)
        except (TypeError, ValidationError):
            logger.warning("Skipping malformed order item %r", raw)
            continue
        product = await products.find(item.productId)
        seller_id = (product or {}).get("sellerId")
        if seller_id and seller_id not in sellers:
            sellers.append(seller_id)
    return sellers


async def fan_out_order_created(db, order_id: str, order: Dict[str, Any]) -> int:
    """Notify the admin feed, the customer and every seller on the order."""
    notifications = NotificationRepository(db)
    ref = {"orderId": order_id}
    total = format_currency(float(order.get("total") or 0))
    customer = order.get("customerName") or "Guest Customer"

    sent = 0
    await notifications.push(ADMIN_FEED, "order_created", "New order", f"{customer} placed an order for {total}.", ref)
    sent += 1
    if order.get("customerId"):
        await notifications.push(
            order["customerId"], "order_created", "Order received",
            f"Your order for {total} has been placed.", ref,
        )
        sent += 1
    for seller_id in await _seller_ids(db, order.get("items") or []):
        await notifications.push(
            seller_id, "order_created", "New order for your products",
            f"{customer} ordered one or more of your products.", ref,
        )
        sent += 1
    return sent


async def fan_out_message_created(db, message_id: str, message: Dict[str, Any]) -> int:
    receiver = message.get("receiverId")
    if not receiver:
        logger.warning("Message %s has no receiverId, nothing to notify", message_id)
        return 0
    text = (message.get("text") or "").strip()
    preview = text if len(text) <= PREVIEW_CHARS else text[:PREVIEW_CHARS - 1] + "…"
    await NotificationRepository(db).push(
        receiver, "message_created", f"New message from {message.get('senderName') or 'a user'}",
        preview,
        {"messageId": message_id, "conversationId": message.get("conversationId")},
    )
    return 1


async def process_trigger(db, topic: str, entity_id: str, data: Dict[str, Any]):
    """
    Background step after the 200 response. Single attempt: failures are
    logged and dropped.
    """
    try:
        if topic == "orders/created":
            sent = await fan_out_order_created(db, entity_id, data)
        elif topic == "messages/created":
            sent = await fan_out_message_created(db, entity_id, data)
        else:
            logger.warning("Unknown trigger topic: %s", topic)
            return
        await post_notification({"topic": topic, "id": entity_id, "notifications": sent})
        logger.info("Trigger %s for %s fanned out to %d recipients", topic, entity_id, sent)
    except Exception:
        logger.exception("Error processing trigger %s for %s", topic, entity_id)


@router.post("/order-created")
async def order_created(
    request: Request,
    background_tasks: BackgroundTasks,
    x_trigger_hmac_sha256: Optional[str] = Header(None),
    db=Depends(get_db),
):
    event = _parse(OrderCreatedEvent, await _signed_json(request, x_trigger_hmac_sha256))
    background_tasks.add_task(process_trigger, db, "orders/created", event.orderId, event.data)
    return {"status": "accepted"}


@router.post("/message-created")
async def message_created(
    request: Request,
    background_tasks: BackgroundTasks,
    x_trigger_hmac_sha256: Optional[str] = Header(None),
    db=Depends(get_db),
):
    event = _parse(MessageCreatedEvent, await _signed_json(request, x_trigger_hmac_sha256))
    background_tasks.add_task(process_trigger, db, "messages/created", event.messageId, event.data)
    return {"status": "accepted"}
