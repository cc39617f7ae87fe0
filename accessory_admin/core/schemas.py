"""
Request schemas for the admin API.

Field names follow the camelCase used by the storefront when it writes
documents into Firestore, so a validated body can be written as-is.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
ProductStatus = Literal["pending", "approved", "rejected", "removed"]
UserRole = Literal["customer", "seller", "admin"]
ApprovalStatus = Literal["pending", "approved", "rejected"]
ReviewStatus = Literal["pending", "approved", "rejected", "flagged"]


# ----------------------- Orders -----------------------
class OrderItem(BaseModel):
    productId: str
    name: str = ""
    price: float = Field(0, ge=0)
    quantity: int = Field(1, ge=0)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: Optional[str] = None


class ComplaintCreate(BaseModel):
    subject: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    raisedBy: Optional[str] = None


class ComplaintResolve(BaseModel):
    resolution: str = Field(..., min_length=1)


# ----------------------- Products -----------------------
class ProductStatusUpdate(BaseModel):
    status: ProductStatus
    reason: Optional[str] = None


class ProductActiveUpdate(BaseModel):
    isActive: bool


class BulkProductUpdate(BaseModel):
    # Firestore caps a write batch at 500 operations
    productIds: List[str] = Field(..., min_length=1, max_length=500)
    status: Optional[ProductStatus] = None
    isActive: Optional[bool] = None

    @model_validator(mode="after")
    def require_change(self):
        if self.status is None and self.isActive is None:
            raise ValueError("Provide status or isActive")
        return self


# ----------------------- Users -----------------------
class UserActiveUpdate(BaseModel):
    isActive: bool


class SellerApprovalUpdate(BaseModel):
    approvalStatus: ApprovalStatus


# ----------------------- Reviews / payments -----------------------
class ReviewModeration(BaseModel):
    status: ReviewStatus
    reason: Optional[str] = None

    @model_validator(mode="after")
    def flag_needs_reason(self):
        if self.status == "flagged" and not (self.reason or "").strip():
            raise ValueError("A reason is required when flagging a review")
        return self


class RefundRequest(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    reason: str = "Customer request"


# ----------------------- Content -----------------------
class Banner(BaseModel):
    title: str = Field(..., min_length=1)
    imageUrl: str = Field(..., min_length=1)
    link: Optional[str] = None
    order: int = 0
    isActive: bool = True


class BannerPosition(BaseModel):
    id: str
    order: int


class FAQ(BaseModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    category: Optional[str] = None
    order: int = 0


class LegalContent(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    type: Literal["terms", "privacy", "refund", "shipping", "other"] = "other"


class AccessoryCategory(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    imageUrl: Optional[str] = None


class CarModel(BaseModel):
    make: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    yearFrom: int = Field(..., ge=1900, le=2100)
    yearTo: Optional[int] = Field(None, ge=1900, le=2100)

    @model_validator(mode="after")
    def check_years(self):
        if self.yearTo is not None and self.yearTo < self.yearFrom:
            raise ValueError("yearTo must not be earlier than yearFrom")
        return self


class DataProtectionPolicy(BaseModel):
    title: str = "Data Protection Policy"
    content: str


# ----------------------- Sessions / analytics -----------------------
class SessionCreate(BaseModel):
    idToken: str = Field(..., min_length=1)


class SearchLogCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    term: str = Field(..., min_length=1, max_length=200)
    userId: Optional[str] = None


# ----------------------- Settings / fraud -----------------------
class FeatureToggles(BaseModel):
    reviews: Optional[bool] = None
    wishlist: Optional[bool] = None
    liveChat: Optional[bool] = None
    pushNotifications: Optional[bool] = None
    orderTracking: Optional[bool] = None
    loyalty: Optional[bool] = None


class AppSettingsUpdate(BaseModel):
    """Partial update; fields left out keep their stored value."""
    appName: Optional[str] = Field(None, min_length=1)
    appVersion: Optional[str] = None
    defaultLanguage: Optional[str] = None
    timezone: Optional[str] = None
    taxRate: Optional[float] = Field(None, ge=0, le=100)
    shippingCost: Optional[float] = Field(None, ge=0)
    freeShippingThreshold: Optional[float] = Field(None, ge=0)
    orderProcessingTime: Optional[str] = None
    featureToggles: Optional[FeatureToggles] = None
    apiKeys: Optional[Dict[str, str]] = None


class ActivityLogCreate(BaseModel):
    userId: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1, max_length=64)
    details: Dict[str, Any] = {}


# ----------------------- Triggers -----------------------
class OrderCreatedEvent(BaseModel):
    orderId: str
    data: Dict = {}


class MessageCreatedEvent(BaseModel):
    messageId: str
    data: Dict = {}
