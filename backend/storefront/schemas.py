"""
Pydantic Schemas
================

Request bodies and the response shapes that map straight onto ORM rows.

Most request fields are Optional on purpose: the API answers a missing
required field with a 400 and a readable message (checked in the CRUD
layer) rather than a 422 validation dump, which is what the storefront
clients expect. Email fields are the exception: they are checked by
`EmailStr` and a malformed address is still answered with a 400 (see the
validation handler in `main.py`).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# ACCOUNTS
# ============================================================================

class SignupRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    full_name: Optional[str] = None
    contact_no: Optional[str] = None
    gender: Optional[str] = None


class LoginRequest(BaseModel):
    identifier: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

    @property
    def login_name(self) -> Optional[str]:
        return self.identifier or self.username or self.email


class UserOut(ORMModel):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    contact_no: Optional[str] = None
    gender: Optional[str] = None
    created_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    contact_no: Optional[str] = None
    gender: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class AddressIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = Field(default=None, alias="zipCode")
    country: Optional[str] = None


class AddressOut(ORMModel):
    id: int
    address: str
    city: str
    zip_code: str
    country: str
    created_at: Optional[datetime] = None


# ============================================================================
# CATALOG
# ============================================================================

class CategoryOut(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None


class CategoryIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class ProductIn(BaseModel):
    name: Optional[str] = None
    excerpt: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[float] = None
    discount_status: bool = False
    discount_percent: float = 0
    availability: bool = True
    category_id: Optional[int] = None
    specs: Dict[str, Any] = Field(default_factory=dict)
    stock: int = 0
    cost: float = 0


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    excerpt: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[float] = None
    discount_status: Optional[bool] = None
    discount_percent: Optional[float] = None
    availability: Optional[bool] = None
    category_id: Optional[int] = None
    specs: Optional[Dict[str, Any]] = None
    stock: Optional[int] = None
    cost: Optional[float] = None


class StockUpdate(BaseModel):
    stock: Optional[int] = None
    operation: str = "set"


# ============================================================================
# CART, BUILDS AND ORDERS
# ============================================================================

class CartAdd(BaseModel):
    product_id: Optional[int] = None
    build_id: Optional[int] = None
    quantity: int = 1


class CartItemUpdate(BaseModel):
    quantity: Optional[int] = None


class BuildCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class BuildUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


class BuildProductAdd(BaseModel):
    product_id: Optional[int] = None
    quantity: int = 1


class CheckoutRequest(BaseModel):
    payment_method: Optional[str] = None
    shipping_address: Optional[AddressIn] = None
    promo_code: Optional[str] = None


class OrderFromCartRequest(BaseModel):
    shipping_address_id: Optional[int] = None
    coupon_code: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None


class BulkStatusUpdate(BaseModel):
    order_ids: List[int] = Field(default_factory=list)
    status: Optional[str] = None


class OrderNotes(BaseModel):
    notes: Optional[str] = None


# ============================================================================
# RATINGS AND Q&A
# ============================================================================

class RatingSubmit(BaseModel):
    product_id: Optional[int] = None
    order_item_id: Optional[int] = None
    order_id: Optional[int] = None
    rating: Optional[float] = None
    review_text: Optional[str] = None


class RatingUpdate(BaseModel):
    rating: Optional[float] = None
    review_text: Optional[str] = None


class QuestionCreate(BaseModel):
    question_text: Optional[str] = None
    category: str = "general"


class QuestionUpdate(BaseModel):
    status: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None


class AnswerCreate(BaseModel):
    answer_text: Optional[str] = None
    is_published: bool = False
    send_to_customer: bool = False


class AnswerUpdate(BaseModel):
    answer_text: Optional[str] = None
    is_published: Optional[bool] = None
    send_to_customer: Optional[bool] = None


# ============================================================================
# MESSAGING AND NOTIFICATIONS
# ============================================================================

class ConversationCreate(BaseModel):
    subject: Optional[str] = None
    message: Optional[str] = None
    type: str = "general"


class MessageCreate(BaseModel):
    message_text: Optional[str] = None
    message: Optional[str] = None

    @property
    def text(self) -> Optional[str]:
        return self.message_text or self.message


class DirectMessage(BaseModel):
    message_text: Optional[str] = None
    subject: Optional[str] = None


class ConversationUpdate(BaseModel):
    status: Optional[str] = None
    assigned_to: Optional[int] = None
    priority: Optional[str] = None


class NotificationOut(ORMModel):
    id: int
    notification_text: str
    notification_type: str
    category: str
    priority: str
    link: Optional[str] = None
    action_url: Optional[str] = None
    seen_status: bool
    data: Optional[Dict[str, Any]] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class NotificationSend(BaseModel):
    user_ids: List[int] = Field(default_factory=list)
    notification_text: Optional[str] = None
    notification_type: str = "general"
    category: str = "general"
    priority: str = "normal"
    link: Optional[str] = None
    action_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class NotificationBroadcast(BaseModel):
    notification_text: Optional[str] = None
    notification_type: str = "announcement"
    category: str = "general"
    priority: str = "normal"
    link: Optional[str] = None
    action_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    data: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# PROMOTIONS AND LOYALTY
# ============================================================================

class PromotionIn(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None
    discount_value: float = 0
    max_uses: Optional[int] = None
    min_order_value: float = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    description: Optional[str] = None
    is_active: bool = True


class PromotionUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None
    discount_value: Optional[float] = None
    max_uses: Optional[int] = None
    min_order_value: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class CouponBatch(BaseModel):
    base_code: Optional[str] = None
    count: int = 1
    name: Optional[str] = None
    type: str = "percentage"
    discount_value: float = 0
    max_uses: Optional[int] = 1
    min_order_value: float = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    description: Optional[str] = None


class RedeemPoints(BaseModel):
    points: Optional[int] = None


class VoucherValidate(BaseModel):
    code: Optional[str] = None
    order_total: float = 0


# ============================================================================
# STAFF
# ============================================================================

class AdminLogin(BaseModel):
    employee_id: Optional[str] = None
    password: Optional[str] = None


class AdminOut(ORMModel):
    admin_id: int
    employee_id: str
    name: str
    clearance_level: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AdminCreate(BaseModel):
    employee_id: Optional[str] = None
    name: Optional[str] = None
    password: Optional[str] = None
    clearance_level: Optional[str] = None


class AdminUpdate(BaseModel):
    name: Optional[str] = None
    password: Optional[str] = None
    is_active: Optional[bool] = None


class ClearanceUpdate(BaseModel):
    clearance_level: Optional[str] = None


class AdminSignupCreate(BaseModel):
    employee_id: Optional[str] = None
    name: Optional[str] = None
    password: Optional[str] = None
    requested_clearance: Optional[str] = None
    reason: Optional[str] = None
    reason_for_access: Optional[str] = None


class SignupReview(BaseModel):
    """Body of ``PUT /signup-requests/{id}``; approval may grant a different clearance."""
    action: Optional[str] = None
    assigned_clearance: Optional[str] = None
    rejection_reason: Optional[str] = None


class AdminProfileUpdate(BaseModel):
    name: Optional[str] = None


class AdminPasswordChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: Optional[str] = Field(default=None, alias="currentPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")
