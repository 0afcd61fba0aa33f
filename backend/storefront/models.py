"""
Database Models
===============

Defines the storefront schema using SQLAlchemy ORM.

Tables by area:
- accounts: general_user, customer, shipping_address
- catalog: product_category, product, product_attribute
- shopping: build, build_product, cart, cart_item, "order", order_item
- promotions & loyalty: promotions, promotion_usage, vouchers,
  customer_points, points_transaction
- feedback: ratings, product_qa, qa_answer
- support: conversation, conversation_participant, message, notification
- staff: admin_users, admin_signup_requests, admin_logs, admin_notifications

JSON columns are JSONB on PostgreSQL and plain JSON elsewhere.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from storefront.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value):
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# ACCOUNTS
# ============================================================================

class GeneralUser(Base):
    """
    A registered storefront user.

    Attributes:
        username / email: Unique login identifiers
        password_hash: bcrypt hash, never returned by the API
        first_name / last_name: Split from the "full name" given at signup

    Relationships:
        customer: The shopper profile (one per user)
    """
    __tablename__ = "general_user"

    id = Column(Integer, primary_key=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    contact_no = Column(String(30))
    gender = Column(String(20))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", back_populates="user", uselist=False)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class Customer(Base):
    """Shopper profile; carts, builds, orders and points hang off this row."""
    __tablename__ = "customer"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("general_user.id", ondelete="CASCADE"), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("GeneralUser", back_populates="customer")
    cart = relationship("Cart", back_populates="customer", uselist=False)
    orders = relationship("Order", back_populates="customer")
    builds = relationship("Build", back_populates="customer")
    addresses = relationship("ShippingAddress", back_populates="customer")
    points = relationship("CustomerPoints", back_populates="customer", uselist=False)


class ShippingAddress(Base):
    __tablename__ = "shipping_address"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, index=True)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=False)
    zip_code = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    customer = relationship("Customer", back_populates="addresses")


# ============================================================================
# CATALOG
# ============================================================================

class ProductCategory(Base):
    __tablename__ = "product_category"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text)
    image_url = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    products = relationship("Product", back_populates="category")


class Product(Base):
    """
    A catalog item.

    Attributes:
        price: List price in USD
        discount_status / discount_percent: When the discount is on, the
            effective price is price * (1 - discount_percent / 100)
        availability: Whether the product can be added to carts
        specs: Free-form key/value specification sheet (filterable)

    Relationships:
        attribute: Stock level, unit cost and sales counter
        category: Owning category
    """
    __tablename__ = "product"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    excerpt = Column(Text)
    image_url = Column(Text)
    price = Column(Float, nullable=False)
    discount_status = Column(Boolean, default=False, nullable=False)
    discount_percent = Column(Float, default=0, nullable=False)
    availability = Column(Boolean, default=True, nullable=False)
    category_id = Column(Integer, ForeignKey("product_category.id", ondelete="SET NULL"), index=True)
    specs = Column(JSONType, default=dict)
    date_added = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    category = relationship("ProductCategory", back_populates="products")
    attribute = relationship(
        "ProductAttribute", back_populates="product", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def stock(self) -> int:
        return self.attribute.stock if self.attribute is not None else 0

    @property
    def effective_price(self) -> float:
        if self.discount_status and self.discount_percent and self.discount_percent > 0:
            return round(self.price * (1 - self.discount_percent / 100), 2)
        return self.price


class ProductAttribute(Base):
    __tablename__ = "product_attribute"
    __table_args__ = (CheckConstraint("stock >= 0", name="product_attribute_stock_check"),)

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("product.id", ondelete="CASCADE"), nullable=False, unique=True)
    stock = Column(Integer, default=0, nullable=False)
    cost = Column(Float, default=0, nullable=False)
    units_sold = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    product = relationship("Product", back_populates="attribute")


# ============================================================================
# BUILDS, CARTS AND ORDERS
# ============================================================================

class Build(Base):
    """A customer-assembled bundle of products, purchasable as one cart line."""
    __tablename__ = "build"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), default="My Build", nullable=False)
    description = Column(Text)
    status = Column(String(50), default="draft", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", back_populates="builds")
    products = relationship("BuildProduct", back_populates="build", cascade="all, delete-orphan")

    @property
    def total_price(self) -> float:
        return round(sum(bp.product.price * bp.quantity for bp in self.products), 2)


class BuildProduct(Base):
    __tablename__ = "build_product"
    __table_args__ = (CheckConstraint("quantity > 0", name="build_product_quantity_check"),)

    id = Column(Integer, primary_key=True)
    build_id = Column(Integer, ForeignKey("build.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("product.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)

    build = relationship("Build", back_populates="products")
    product = relationship("Product")


class Cart(Base):
    __tablename__ = "cart"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    customer = relationship("Customer", back_populates="cart")
    items = relationship("CartItem", back_populates="cart", cascade="all, delete-orphan")


class CartItem(Base):
    """
    One cart line. References exactly one of a product or a build.

    unit_price is captured when the line is added (effective product price,
    or the sum of the build's components).
    """
    __tablename__ = "cart_item"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="cart_item_quantity_check"),
        CheckConstraint("(product_id IS NULL) <> (build_id IS NULL)", name="cart_item_single_ref_check"),
    )

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("cart.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("product.id", ondelete="CASCADE"))
    build_id = Column(Integer, ForeignKey("build.id", ondelete="CASCADE"))
    quantity = Column(Integer, default=1, nullable=False)
    unit_price = Column(Float, nullable=False)
    added_at = Column(DateTime(timezone=True), default=utcnow)

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product")
    build = relationship("Build")


class Order(Base):
    """
    A placed order.

    Attributes:
        status: pending -> processing -> shipped -> delivered, or cancelled
        total_price: subtotal - discount_amount + delivery_charge
        promo_id: Admin promotion applied at checkout, if any
            (customer vouchers link back through vouchers.order_id)

    Relationships:
        items: Order lines (products or builds)
    """
    __tablename__ = "order"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, index=True)
    order_date = Column(DateTime(timezone=True), default=utcnow, index=True)
    status = Column(String(50), default="pending", nullable=False, index=True)
    payment_status = Column(Boolean, default=False, nullable=False)
    payment_method = Column(String(50))
    delivery_charge = Column(Float, default=0, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    total_price = Column(Float, nullable=False)
    shipping_address_id = Column(Integer, ForeignKey("shipping_address.id", ondelete="SET NULL"))
    promo_id = Column(Integer, ForeignKey("promotions.id", ondelete="SET NULL"))
    notes = Column(Text)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", back_populates="orders")
    shipping_address = relationship("ShippingAddress")
    promotion = relationship("Promotion")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """
    An order line. Prices are frozen at checkout; the product or build
    reference is nulled if that product or build is deleted later.
    """
    __tablename__ = "order_item"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="order_item_quantity_check"),
        CheckConstraint("product_id IS NULL OR build_id IS NULL", name="order_item_single_ref_check"),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("order.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("product.id", ondelete="SET NULL"))
    build_id = Column(Integer, ForeignKey("build.id", ondelete="SET NULL"))
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
    build = relationship("Build")
    components = relationship("OrderItemComponent", back_populates="order_item", cascade="all, delete-orphan")


class OrderItemComponent(Base):
    """
    The parts a build line shipped with, copied from the build at checkout.
    Stock moves and rating eligibility read these rows, so later edits to
    the build (or deleting it) leave the order untouched.
    """
    __tablename__ = "order_item_component"
    __table_args__ = (CheckConstraint("quantity > 0", name="order_item_component_quantity_check"),)

    id = Column(Integer, primary_key=True)
    order_item_id = Column(Integer, ForeignKey("order_item.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("product.id", ondelete="SET NULL"))
    quantity = Column(Integer, nullable=False)

    order_item = relationship("OrderItem", back_populates="components")
    product = relationship("Product")


# ============================================================================
# PROMOTIONS AND LOYALTY
# ============================================================================

class Promotion(Base):
    """
    Admin-created discount code.

    Attributes:
        type: percentage | fixed_amount | free_shipping
        discount_value: Percent for "percentage", dollars for "fixed_amount"
        max_uses: Total redemptions allowed (None = unlimited)
        min_order_value: Minimum cart subtotal to qualify
    """
    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=False, unique=True, index=True)
    type = Column(String(20), nullable=False)
    discount_value = Column(Float, default=0, nullable=False)
    max_uses = Column(Integer)
    min_order_value = Column(Float, default=0, nullable=False)
    start_date = Column(DateTime(timezone=True))
    end_date = Column(DateTime(timezone=True))
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("admin_users.admin_id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    usages = relationship("PromotionUsage", back_populates="promotion", cascade="all, delete-orphan")


class PromotionUsage(Base):
    __tablename__ = "promotion_usage"

    id = Column(Integer, primary_key=True)
    promotion_id = Column(Integer, ForeignKey("promotions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("general_user.id", ondelete="CASCADE"), nullable=False)
    order_id = Column(Integer, ForeignKey("order.id", ondelete="SET NULL"))
    discount_amount = Column(Float, default=0, nullable=False)
    order_value = Column(Float, default=0, nullable=False)
    used_at = Column(DateTime(timezone=True), default=utcnow)

    promotion = relationship("Promotion", back_populates="usages")
    user = relationship("GeneralUser")


class Voucher(Base):
    """
    A customer-owned discount code minted from loyalty points.

    Attributes:
        discount_type: fixed_amount | percentage
        value: Dollars or percent, depending on discount_type
        status: active | used | expired
        points_used: Points spent to mint this voucher
    """
    __tablename__ = "vouchers"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(50), nullable=False, unique=True)
    type = Column(String(20), default="discount", nullable=False)
    value = Column(Float, nullable=False)
    discount_type = Column(String(20), default="fixed_amount", nullable=False)
    min_order_amount = Column(Float, default=0)
    max_discount_amount = Column(Float)
    is_redeemed = Column(Boolean, default=False, nullable=False)
    redeemed_at = Column(DateTime(timezone=True))
    order_id = Column(Integer, ForeignKey("order.id", ondelete="SET NULL"))
    points_used = Column(Integer)
    status = Column(String(20), default="active", nullable=False)
    expires_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)


class CustomerPoints(Base):
    __tablename__ = "customer_points"
    __table_args__ = (CheckConstraint("points_balance >= 0", name="customer_points_balance_check"),)

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, unique=True)
    points_balance = Column(Integer, default=0, nullable=False)
    total_earned = Column(Integer, default=0, nullable=False)
    total_redeemed = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", back_populates="points")


class PointsTransaction(Base):
    """Ledger row: earned | redeemed | bonus."""
    __tablename__ = "points_transaction"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_type = Column(String(20), nullable=False)
    points = Column(Integer, nullable=False)
    order_id = Column(Integer, ForeignKey("order.id", ondelete="SET NULL"))
    voucher_id = Column(Integer, ForeignKey("vouchers.id", ondelete="SET NULL"))
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)


# ============================================================================
# RATINGS AND Q&A
# ============================================================================

class Rating(Base):
    """
    A 0-10 product rating tied to the order line it was bought on.

    One rating per (user, product, order item); a product bought inside a
    build is rated against the build's order line.
    """
    __tablename__ = "ratings"
    __table_args__ = (
        CheckConstraint("rating >= 0 AND rating <= 10", name="ratings_rating_check"),
        UniqueConstraint("user_id", "product_id", "order_item_id", name="ratings_user_product_item_key"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("general_user.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("order.id", ondelete="CASCADE"), nullable=False)
    order_item_id = Column(Integer, ForeignKey("order_item.id", ondelete="CASCADE"), nullable=False)
    rating = Column(Integer, nullable=False)
    review_text = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("GeneralUser")
    product = relationship("Product")


class ProductQuestion(Base):
    """Customer question about a product; status pending | answered | published."""
    __tablename__ = "product_qa"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False)
    question_text = Column(Text, nullable=False)
    category = Column(String(50), default="general", nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    priority = Column(String(20), default="normal", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    product = relationship("Product")
    customer = relationship("Customer")
    answers = relationship("QAAnswer", back_populates="question", cascade="all, delete-orphan")


class QAAnswer(Base):
    __tablename__ = "qa_answer"

    id = Column(Integer, primary_key=True)
    question_id = Column(Integer, ForeignKey("product_qa.id", ondelete="CASCADE"), nullable=False, index=True)
    admin_id = Column(Integer, ForeignKey("admin_users.admin_id", ondelete="SET NULL"))
    answer_text = Column(Text, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    send_to_customer = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    question = relationship("ProductQuestion", back_populates="answers")
    admin = relationship("AdminUser")


# ============================================================================
# SUPPORT: CONVERSATIONS AND NOTIFICATIONS
# ============================================================================

class Conversation(Base):
    """
    A support thread opened by a customer.

    status: pending (no staff reply yet) | active | resolved | closed
    """
    __tablename__ = "conversation"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)
    priority = Column(String(20), default="normal", nullable=False)
    type = Column(String(50), default="general", nullable=False)
    created_by = Column(Integer, ForeignKey("general_user.id", ondelete="CASCADE"), nullable=False)
    assigned_to = Column(Integer, ForeignKey("admin_users.admin_id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    last_message_at = Column(DateTime(timezone=True), default=utcnow)

    creator = relationship("GeneralUser")
    participants = relationship(
        "ConversationParticipant", back_populates="conversation", cascade="all, delete-orphan"
    )
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan")


class ConversationParticipant(Base):
    __tablename__ = "conversation_participant"
    __table_args__ = (UniqueConstraint("conversation_id", "user_id", name="conversation_participant_key"),)

    id = Column(Integer, primary_key=True)
    conversation_id = Column(Integer, ForeignKey("conversation.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("general_user.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), default="participant", nullable=False)
    joined_at = Column(DateTime(timezone=True), default=utcnow)
    last_read_at = Column(DateTime(timezone=True))
    is_active = Column(Boolean, default=True, nullable=False)

    conversation = relationship("Conversation", back_populates="participants")


class Message(Base):
    """
    A message, either inside a conversation or a legacy direct message.

    Staff replies carry sender_admin_id; customer messages carry sender_id.
    """
    __tablename__ = "message"

    id = Column(Integer, primary_key=True)
    conversation_id = Column(Integer, ForeignKey("conversation.id", ondelete="CASCADE"), index=True)
    sender_id = Column(Integer, ForeignKey("general_user.id", ondelete="SET NULL"))
    sender_admin_id = Column(Integer, ForeignKey("admin_users.admin_id", ondelete="SET NULL"))
    receiver_id = Column(Integer, ForeignKey("general_user.id", ondelete="SET NULL"))
    subject = Column(String(255))
    message_text = Column(Text, nullable=False)
    message_type = Column(String(20), default="text", nullable=False)
    seen_status = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("GeneralUser", foreign_keys=[sender_id])
    sender_admin = relationship("AdminUser", foreign_keys=[sender_admin_id])


class Notification(Base):
    """
    User-facing notification.

    Attributes:
        notification_type: order_placed, order_status_update, points_earned,
            voucher_generated, vouchers_available, qa_answered, general, ...
        priority: low | normal | high | urgent
        expires_at: Hidden from listings after this moment
        data: Free-form JSON payload for the client
    """
    __tablename__ = "notification"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("general_user.id", ondelete="CASCADE"), nullable=False, index=True)
    notification_text = Column(Text, nullable=False)
    notification_type = Column(String(50), default="general", nullable=False)
    category = Column(String(50), default="general", nullable=False)
    priority = Column(String(20), default="normal", nullable=False)
    link = Column(Text)
    action_url = Column(Text)
    seen_status = Column(Boolean, default=False, nullable=False)
    data = Column(JSONType, default=dict)
    expires_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)


# ============================================================================
# STAFF
# ============================================================================

class AdminUser(Base):
    """
    Staff account. Logs in with employee_id; clearance_level gates the
    admin API (GENERAL_MANAGER passes every check).
    """
    __tablename__ = "admin_users"

    admin_id = Column(Integer, primary_key=True)
    employee_id = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    password = Column(String(255), nullable=False)
    clearance_level = Column(String(50), nullable=False)
    user_id = Column(Integer, ForeignKey("general_user.id", ondelete="SET NULL"))
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AdminSignupRequest(Base):
    __tablename__ = "admin_signup_requests"

    request_id = Column(Integer, primary_key=True)
    employee_id = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    requested_clearance = Column(String(50), nullable=False)
    reason = Column(Text)
    status = Column(String(20), default="pending", nullable=False)
    reviewed_by = Column(Integer, ForeignKey("admin_users.admin_id", ondelete="SET NULL"))
    reviewed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)


class AdminLog(Base):
    __tablename__ = "admin_logs"

    log_id = Column(Integer, primary_key=True)
    admin_id = Column(Integer, ForeignKey("admin_users.admin_id", ondelete="SET NULL"))
    action = Column(String(100), nullable=False)
    target_type = Column(String(50))
    target_id = Column(String(100))
    details = Column(JSONType)
    ip_address = Column(String(64))
    user_agent = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    admin = relationship("AdminUser")


class AdminNotification(Base):
    __tablename__ = "admin_notifications"

    notification_id = Column(Integer, primary_key=True)
    admin_id = Column(Integer, ForeignKey("admin_users.admin_id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text)
    related_id = Column(String(100))
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
