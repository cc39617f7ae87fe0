# accessory_admin/core/repositories.py
"""
One repository per Firestore collection.

Repositories hide query construction from the routers: callers pass plain
``(field, op, value)`` filters and get back dicts with the document id
under ``"id"``.
"""
import copy
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from google.cloud.firestore import ArrayUnion, FieldFilter, Query, async_transactional

Filter = Tuple[str, str, Any]


class DocumentNotFound(Exception):
    """A single-document lookup missed; ``message`` is shown to the operator."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Repository:
    collection_name: str = ""
    not_found_message: str = "Document not found"

    def __init__(self, db):
        self.db = db

    def _collection(self):
        return self.db.collection(self.collection_name)

    def _to_dict(self, snap) -> Dict[str, Any]:
        data = snap.to_dict() or {}
        data["id"] = snap.id
        return data

    async def fetch(
        self,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self._collection()
        for field, op, value in filters:
            query = query.where(filter=FieldFilter(field, op, value))
        if order_by:
            query = query.order_by(
                order_by, direction=Query.DESCENDING if descending else Query.ASCENDING
            )
        if limit:
            query = query.limit(limit)
        return [self._to_dict(snap) async for snap in query.stream()]

    async def find(self, doc_id: str) -> Optional[Dict[str, Any]]:
        snap = await self._collection().document(doc_id).get()
        if not snap.exists:
            return None
        return self._to_dict(snap)

    async def get(self, doc_id: str) -> Dict[str, Any]:
        doc = await self.find(doc_id)
        if doc is None:
            raise DocumentNotFound(self.not_found_message)
        return doc

    async def create(self, data: Dict[str, Any]) -> str:
        _, ref = await self._collection().add(data)
        return ref.id

    async def update(self, doc_id: str, data: Dict[str, Any]) -> None:
        ref = self._collection().document(doc_id)
        snap = await ref.get()
        if not snap.exists:
            raise DocumentNotFound(self.not_found_message)
        await ref.update(data)

    async def delete(self, doc_id: str) -> None:
        ref = self._collection().document(doc_id)
        snap = await ref.get()
        if not snap.exists:
            raise DocumentNotFound(self.not_found_message)
        await ref.delete()


def _matches(search: str, *values: Optional[str]) -> bool:
    term = search.lower()
    return any(term in (v or "").lower() for v in values)


# ----------------------- Orders -----------------------
class OrderRepository(Repository):
    collection_name = "orders"
    not_found_message = "Order not found"

    def _to_dict(self, snap) -> Dict[str, Any]:
        data = snap.to_dict() or {}
        shipping = data.get("shippingAddress") or {}
        data["orderNumber"] = data.get("orderNumber") or data.get("id") or snap.id[-6:].upper()
        data["id"] = snap.id
        data["customerName"] = data.get("customerName") or shipping.get("fullName") or "Guest Customer"
        data["customerEmail"] = data.get("customerEmail") or data.get("email") or "N/A"
        data["paymentStatus"] = data.get("paymentStatus") or "pending"
        data["itemsCount"] = len(data.get("items") or [])
        return data

    async def list_orders(self, status: Optional[str] = None, search: Optional[str] = None):
        filters = [("status", "==", status)] if status else []
        orders = await self.fetch(filters, order_by="createdAt", descending=True)
        if search:
            orders = [
                o for o in orders
                if _matches(search, o["orderNumber"], o["customerName"], o["customerEmail"])
            ]
        return orders

    async def list_in_range(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        return await self.fetch(
            [("createdAt", ">=", start), ("createdAt", "<=", end)],
            order_by="createdAt",
        )

    async def list_recent(self, limit: int = 10):
        return await self.fetch(order_by="createdAt", descending=True, limit=limit)

    async def list_for_customer(self, customer_id: str):
        return await self.fetch(
            [("customerId", "==", customer_id)], order_by="createdAt", descending=True
        )

    async def update_status(self, order_id: str, status: str, updated_by: str, note: Optional[str] = None):
        now = utcnow()
        entry = {"status": status, "timestamp": now, "updatedBy": updated_by}
        if note:
            entry["note"] = note
        await self.update(order_id, {
            "status": status,
            "statusHistory": ArrayUnion([entry]),
            "updatedAt": now,
        })
        return entry

    async def add_complaint(self, order_id: str, complaint: Dict[str, Any]):
        now = utcnow()
        record = {**complaint, "status": "open", "createdAt": now}
        await self.update(order_id, {"complaints": ArrayUnion([record]), "updatedAt": now})
        return record

    async def resolve_complaint(self, order_id: str, index: int, resolution: str, resolved_by: str):
        """
        Rewrite one entry of the complaints array.

        Read and write share a transaction, so a complaint appended in between
        makes Firestore retry instead of being overwritten.
        """
        ref = self._collection().document(order_id)

        @async_transactional
        async def resolve(transaction):
            snap = await ref.get(transaction=transaction)
            if not snap.exists:
                raise DocumentNotFound(self.not_found_message)
            complaints = list((snap.to_dict() or {}).get("complaints") or [])
            if index < 0 or index >= len(complaints):
                raise DocumentNotFound("Complaint not found")
            now = utcnow()
            complaints[index] = {
                **complaints[index],
                "status": "resolved",
                "resolution": resolution,
                "resolvedBy": resolved_by,
                "resolvedAt": now,
            }
            transaction.update(ref, {"complaints": complaints, "updatedAt": now})
            return complaints[index]

        return await resolve(self.db.transaction())


# ----------------------- Products -----------------------
class ProductRepository(Repository):
    collection_name = "products"
    not_found_message = "Product not found"

    async def list_products(
        self,
        category: Optional[str] = None,
        status: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ):
        filters: List[Filter] = []
        if category:
            filters.append(("category", "==", category))
        if status:
            filters.append(("status", "==", status))
        if is_active is not None:
            filters.append(("isActive", "==", is_active))
        products = await self.fetch(filters, order_by="createdAt", descending=True)
        if search:
            products = [
                p for p in products
                if _matches(search, p.get("name"), p.get("description"), p.get("category"))
            ]
        return products

    async def category_index(self) -> Dict[str, Optional[str]]:
        """Product id -> category for every product (one full collection read)."""
        return {p["id"]: p.get("category") for p in await self.fetch()}

    async def categories(self) -> List[str]:
        return sorted({c for c in (await self.category_index()).values() if c})

    async def top_reviewed(self, limit: int = 5):
        return await self.fetch(order_by="totalReviews", descending=True, limit=limit)

    async def low_stock(self, threshold: int = 10):
        return await self.fetch(
            [("stock", "<=", threshold), ("isActive", "==", True)], order_by="stock"
        )

    async def set_status(self, product_id: str, status: str, reason: Optional[str] = None):
        changes: Dict[str, Any] = {"status": status, "updatedAt": utcnow()}
        if status == "removed":
            changes["isActive"] = False
        if reason:
            changes["moderationReason"] = reason
        await self.update(product_id, changes)
        return changes

    async def set_active(self, product_id: str, is_active: bool):
        await self.update(product_id, {"isActive": is_active, "updatedAt": utcnow()})

    async def bulk_update(self, product_ids: Iterable[str], changes: Dict[str, Any]) -> List[str]:
        ids = list(dict.fromkeys(product_ids))
        # a batch fails as a whole on a missing document
        for product_id in ids:
            if await self.find(product_id) is None:
                raise DocumentNotFound(self.not_found_message)
        changes = {**changes, "updatedAt": utcnow()}
        if changes.get("status") == "removed":
            changes["isActive"] = False
        batch = self.db.batch()
        for product_id in ids:
            batch.update(self._collection().document(product_id), changes)
        await batch.commit()
        return ids


# ----------------------- Users -----------------------
class UserRepository(Repository):
    collection_name = "users"
    not_found_message = "User not found"

    async def list_users(
        self,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        approval: Optional[str] = None,
    ):
        filters: List[Filter] = []
        if role:
            filters.append(("role", "==", role))
        if is_active is not None:
            filters.append(("isActive", "==", is_active))
        if approval:
            filters.append(("approvalStatus", "==", approval))
        return await self.fetch(filters)

    async def count_active_customers(self) -> int:
        return len(await self.fetch([("role", "==", "customer"), ("isActive", "==", True)]))

    async def summary(self) -> Dict[str, int]:
        users = await self.fetch()
        roles = Counter(u.get("role") or "customer" for u in users)
        return {
            "totalUsers": len(users),
            "activeUsers": sum(1 for u in users if u.get("isActive")),
            "customers": roles["customer"],
            "sellers": roles["seller"],
            "admins": roles["admin"],
            "pendingSellers": sum(
                1 for u in users
                if u.get("role") == "seller" and u.get("approvalStatus", "pending") == "pending"
            ),
        }

    async def set_active(self, user_id: str, is_active: bool):
        await self.update(user_id, {"isActive": is_active, "updatedAt": utcnow()})

    async def set_approval(self, user_id: str, approval_status: str):
        await self.update(user_id, {"approvalStatus": approval_status, "updatedAt": utcnow()})


# ----------------------- Reviews -----------------------
class ReviewRepository(Repository):
    collection_name = "reviews"
    not_found_message = "Review not found"

    async def list_reviews(self, status: Optional[str] = None):
        return await self.fetch([("status", "==", status)] if status else [])

    async def moderation_queue(self):
        return await self.fetch([("status", "in", ["pending", "flagged"])])

    async def set_status(self, review_id: str, status: str, reason: Optional[str] = None, moderated_by: Optional[str] = None):
        changes: Dict[str, Any] = {"status": status, "moderatedAt": utcnow()}
        if moderated_by:
            changes["moderatedBy"] = moderated_by
        if status == "flagged":
            changes["flagReason"] = reason
        elif reason:
            changes["moderationReason"] = reason
        await self.update(review_id, changes)
        return changes


# ----------------------- Payments -----------------------
class PaymentRepository(Repository):
    collection_name = "payments"
    not_found_message = "Payment not found"

    async def refund(self, payment_id: str, amount: float, reason: str, refunded_by: str):
        payment = await self.get(payment_id)
        paid = float(payment.get("amount") or 0)
        changes = {
            "status": "refunded",
            "refundStatus": "refunded" if amount >= paid else "partial",
            "refundAmount": amount,
            "refundReason": reason,
            "refundedBy": refunded_by,
            "refundDate": utcnow(),
        }
        await self.update(payment_id, changes)
        return changes


# ----------------------- Content -----------------------
class ContentRepository(Repository):
    """Plain CRUD over an admin-authored content collection."""

    def __init__(self, db, collection_name: str, not_found_message: str):
        super().__init__(db)
        self.collection_name = collection_name
        self.not_found_message = not_found_message

    async def reorder(self, positions: Sequence[Tuple[str, int]]) -> None:
        for doc_id in [doc_id for doc_id, _ in positions]:
            if await self.find(doc_id) is None:
                raise DocumentNotFound(self.not_found_message)
        batch = self.db.batch()
        for doc_id, order in positions:
            batch.update(self._collection().document(doc_id), {"order": order})
        await batch.commit()


class PolicyRepository(Repository):
    collection_name = "policies"

    async def get_policy(self, name: str, default_title: str) -> Dict[str, Any]:
        doc = await self.find(name)
        if doc is None:
            return {"id": name, "title": default_title, "content": ""}
        return doc

    async def put_policy(self, name: str, data: Dict[str, Any]) -> None:
        await self._collection().document(name).set({**data, "updatedAt": utcnow()})


DEFAULT_SETTINGS: Dict[str, Any] = {
    "appName": "Car Accessories Store",
    "appVersion": "1.0.0",
    "defaultLanguage": "en",
    "timezone": "Africa/Dar_es_Salaam",
    "taxRate": 18,
    "shippingCost": 5000,
    "freeShippingThreshold": 100000,
    "orderProcessingTime": "1-2",
    "featureToggles": {
        "reviews": True,
        "wishlist": True,
        "liveChat": False,
        "pushNotifications": True,
        "orderTracking": True,
        "loyalty": False,
    },
    "apiKeys": {"paymentGateway": "", "smsService": ""},
}


class SettingsRepository(Repository):
    """The storefront configuration lives in one document, ``appConfig/config``."""

    collection_name = "appConfig"
    doc_id = "config"

    async def get_settings(self) -> Dict[str, Any]:
        """Stored values over the defaults, one level deep for nested maps."""
        settings = copy.deepcopy(DEFAULT_SETTINGS)
        stored = await self.find(self.doc_id) or {}
        stored.pop("id", None)
        for key, value in stored.items():
            if isinstance(value, dict) and isinstance(settings.get(key), dict):
                settings[key].update(value)
            else:
                settings[key] = value
        return settings

    async def save_settings(self, changes: Dict[str, Any]) -> None:
        # merge keeps fields (and nested toggles) the caller did not send
        await self._collection().document(self.doc_id).set(
            {**changes, "updatedAt": utcnow()}, merge=True
        )


# ----------------------- Search logs / notifications -----------------------
class SearchLogRepository(Repository):
    collection_name = "searchLogs"

    async def log(self, term: str, user_id: Optional[str] = None) -> str:
        return await self.create({
            "term": term.strip().lower(),
            "userId": user_id,
            "timestamp": utcnow(),
        })

    async def most_searched(self, limit: int = 10) -> List[Dict[str, Any]]:
        counts = Counter(doc.get("term") for doc in await self.fetch() if doc.get("term"))
        return [{"term": term, "count": count} for term, count in counts.most_common(limit)]


class NotificationRepository(Repository):
    collection_name = "notifications"

    async def push(self, recipient_id: str, kind: str, title: str, body: str, ref: Dict[str, Any]) -> str:
        return await self.create({
            "recipientId": recipient_id,
            "type": kind,
            "title": title,
            "body": body,
            "ref": ref,
            "read": False,
            "createdAt": utcnow(),
        })


# ----------------------- Activity / fraud -----------------------
class ActivityLogRepository(Repository):
    collection_name = "activityLogs"

    async def log(self, user_id: str, action: str, details: Dict[str, Any]) -> str:
        return await self.create({
            "userId": user_id,
            "action": action,
            "details": details,
            "timestamp": utcnow(),
            "ipAddress": details.get("ipAddress") or "unknown",
            "userAgent": details.get("userAgent") or "unknown",
        })

    async def recent(self, user_id: str, action: str, since: datetime) -> List[Dict[str, Any]]:
        return await self.fetch(
            [("userId", "==", user_id), ("action", "==", action), ("timestamp", ">=", since)],
            order_by="timestamp",
            descending=True,
        )

    async def for_user(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        return await self.fetch(
            [("userId", "==", user_id)], order_by="timestamp", descending=True, limit=limit
        )


class FraudAlertRepository(Repository):
    collection_name = "fraudAlerts"

    async def latest(self, limit: int = 5) -> List[Dict[str, Any]]:
        return await self.fetch(order_by="timestamp", descending=True, limit=limit)
