# storefront/model/order.py
from enum import Enum

from ..extensions import db
from ..utils.dates import iso, utcnow
from ..utils.money import to_float


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# delivered and cancelled are terminal
TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


class InvalidTransition(ValueError):
    pass


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, index=True)   # e.g. "ORD-20251022-0001"
    status = db.Column(db.String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)

    user_id = db.Column(db.String(64), nullable=False, default="guest", index=True)
    is_guest_order = db.Column(db.Boolean, nullable=False, default=True)

    # Customer snapshot
    customer_name = db.Column(db.String(180), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False, default="")
    customer_phone = db.Column(db.String(50), nullable=False, default="")
    address = db.Column(db.String(500), nullable=False, default="")
    city = db.Column(db.String(120), nullable=False, default="")
    notes = db.Column(db.String(1000), nullable=False, default="")

    # Money snapshot
    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    delivery_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    coupon_code = db.Column(db.String(64), nullable=False, default="")
    coupon_discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=False, default="cod")
    payment_status = db.Column(db.String(32), nullable=False, default="pending")
    payment_id = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    delivered_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="joined",
        order_by="OrderItem.id.asc()",
    )

    @property
    def status_enum(self) -> OrderStatus:
        return OrderStatus(self.status)

    def can_transition(self, new_status: OrderStatus) -> bool:
        return new_status in TRANSITIONS[self.status_enum]

    def transition(self, new_status):
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            allowed = ", ".join(s.value for s in OrderStatus)
            raise InvalidTransition(f"status must be one of: {allowed}")
        if not self.can_transition(new_status):
            raise InvalidTransition(f"cannot move order from {self.status} to {new_status.value}")
        self.status = new_status.value
        if new_status == OrderStatus.DELIVERED:
            self.delivered_at = utcnow()
        elif new_status == OrderStatus.CANCELLED:
            self.cancelled_at = utcnow()

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "status": self.status,
            "userId": self.user_id,
            "isGuestOrder": self.is_guest_order,
            "customer": {
                "name": self.customer_name,
                "email": self.customer_email,
                "phone": self.customer_phone,
                "address": self.address,
                "city": self.city,
            },
            "notes": self.notes,
            "items": [i.as_api() for i in self.items],
            "subtotal": to_float(self.subtotal),
            "deliveryFee": to_float(self.delivery_fee),
            "couponCode": self.coupon_code,
            "couponDiscount": to_float(self.coupon_discount),
            "total": to_float(self.total),
            "paymentMethod": self.payment_method,
            "paymentStatus": self.payment_status,
            "paymentId": self.payment_id,
            "createdAt": iso(self.created_at),
            "deliveredAt": iso(self.delivered_at),
            "cancelledAt": iso(self.cancelled_at),
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # not a FK: the line must survive catalog deletions
    product_id = db.Column(db.Integer, index=True)
    product_name = db.Column(db.String(200), nullable=False)
    product_image = db.Column(db.Text, nullable=False, default="")

    price = db.Column(db.Numeric(12, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    selected_options = db.Column(db.JSON, nullable=False, default=dict)
    options_pricing = db.Column(db.JSON, nullable=False, default=dict)
    attachments = db.Column(db.JSON, nullable=False, default=dict)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    def as_api(self):
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "productImage": self.product_image,
            "price": to_float(self.price),
            "quantity": self.quantity,
            "selectedOptions": self.selected_options or {},
            "optionsPricing": self.options_pricing or {},
            "attachments": self.attachments or {},
            "totalPrice": to_float(self.total_price),
        }
