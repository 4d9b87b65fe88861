# storefront/services/order_service.py
"""Checkout: authoritative order totals and the immutable order snapshot."""
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, update

from ..errors import ConflictError, CouponRejected, NotFoundError, ValidationError
from ..extensions import db
from ..model import CartItem, Coupon, Customer, GUEST, Order, OrderItem, OrderStatus, Product
from ..utils.dates import utcnow
from ..utils.money import D, ZERO, round_money
from ..utils.parsing import require_quantity
from .cart_service import clean_attachments, resolve_options
from .coupon_service import calculate_discount, find_coupon, redeem_coupon

log = logging.getLogger(__name__)


def line_total(unit_price, option_deltas, quantity) -> Decimal:
    return round_money((D(unit_price) + sum((D(d) for d in option_deltas), ZERO)) * int(quantity))


def items_subtotal(lines) -> Decimal:
    """``lines`` yields ``(unit_price, option_deltas, quantity)``."""
    return round_money(sum((line_total(p, d, q) for p, d, q in lines), ZERO))


@dataclass
class OrderLine:
    product_id: int
    product_name: str
    product_image: str
    price: Decimal
    quantity: int
    selected_options: dict = field(default_factory=dict)
    options_pricing: dict = field(default_factory=dict)
    attachments: dict = field(default_factory=dict)

    @property
    def total_price(self) -> Decimal:
        return line_total(self.price, self.options_pricing.values(), self.quantity)


@dataclass
class OrderTotals:
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal
    total: Decimal
    coupon: Coupon | None = None

    def as_api(self):
        return {
            "subtotal": float(self.subtotal),
            "deliveryFee": float(self.delivery_fee),
            "couponDiscount": float(self.discount),
            "couponCode": self.coupon.code if self.coupon else "",
            "total": float(self.total),
        }


def reconcile_totals(lines, delivery_fee=ZERO, coupon_code=None) -> OrderTotals:
    """Compute subtotal, coupon discount and total from the lines themselves.

    A coupon code is re-checked against the computed subtotal; an unknown or
    ineligible code raises instead of silently turning into a zero discount.
    """
    delivery_fee = round_money(delivery_fee or 0)
    if delivery_fee < 0:
        raise ValidationError("deliveryFee must be >= 0")

    subtotal = round_money(sum((l.total_price for l in lines), ZERO))
    discount = ZERO
    coupon = None

    if coupon_code:
        coupon = find_coupon(coupon_code)
        if coupon is None:
            raise NotFoundError("coupon not found")
        result = calculate_discount(coupon, subtotal)
        if not result.ok:
            raise CouponRejected(result.reason, code=coupon.code)
        discount = result.discount

    total = max(ZERO, round_money(subtotal + delivery_fee - discount))
    return OrderTotals(subtotal=subtotal, delivery_fee=delivery_fee, discount=discount, total=total, coupon=coupon)


# ---- building lines ---------------------------------------------------------

def lines_from_cart(items: list[CartItem]) -> list[OrderLine]:
    """Order lines priced from the cart's own snapshot.

    Lines whose product has since been removed or deactivated are refused.
    """
    for i in items:
        product = i.product or db.session.get(Product, i.product_id)
        if product is None or not product.is_active:
            raise ValidationError(f"{i.product_name} is no longer available")
    return [
        OrderLine(
            product_id=i.product_id,
            product_name=i.product_name,
            product_image=i.image or "",
            price=D(i.price),
            quantity=i.quantity,
            selected_options=dict(i.selected_options or {}),
            options_pricing={k: D(v) for k, v in (i.options_pricing or {}).items()},
            attachments=dict(i.attachments or {}),
        )
        for i in items
    ]


def lines_from_payload(raw_items) -> list[OrderLine]:
    """Order lines priced from the current catalog; client prices are ignored."""
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")
    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationError("each item must be an object")
        product = _active_product(raw.get("productId"))
        selected = raw.get("selectedOptions") or {}
        deltas = resolve_options(product, selected)
        lines.append(OrderLine(
            product_id=product.id,
            product_name=product.name,
            product_image=product.main_image or "",
            price=D(product.price),
            quantity=require_quantity(raw.get("quantity", 1)),
            selected_options=dict(selected),
            options_pricing=deltas,
            attachments=clean_attachments(raw.get("attachments")),
        ))
    return lines


def _active_product(product_id) -> Product:
    try:
        pid = int(product_id)
    except (TypeError, ValueError):
        raise ValidationError("productId must be an integer")
    product = db.session.get(Product, pid)
    if not product or not product.is_active:
        raise NotFoundError(f"product {pid} not found")
    return product


# ---- placing ----------------------------------------------------------------

def default_delivery_fee() -> Decimal:
    return round_money(current_app.config.get("DEFAULT_DELIVERY_FEE") or 0)


def _reserve_stock(lines):
    wanted = {}
    for l in lines:
        wanted[l.product_id] = wanted.get(l.product_id, 0) + l.quantity
    for pid, qty in wanted.items():
        stmt = (
            update(Product)
            .where(Product.id == pid, Product.stock >= qty)
            .values(stock=Product.stock - qty)
            .execution_options(synchronize_session=False)
        )
        if db.session.execute(stmt).rowcount != 1:
            name = next(l.product_name for l in lines if l.product_id == pid)
            raise ConflictError(f"insufficient stock for {name}")


def _object(value, name) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{name} must be an object")
    return value


def _text(data: dict, key) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip()


def _customer_for(user_id) -> Customer | None:
    if not user_id or user_id == GUEST:
        return None
    try:
        return db.session.get(Customer, int(user_id))
    except (TypeError, ValueError):
        return None


def place_order(lines, customer_info, user_id=GUEST, delivery_fee=None, coupon_code=None,
                payment=None, clear_cart_of=None) -> Order:
    """Persist an order for ``lines`` in a single transaction.

    Totals are reconciled server side, stock is reserved, the coupon use is
    recorded exactly once and, when ``clear_cart_of`` is given, that user's
    cart lines are removed. Any failure rolls the whole order back.
    """
    if not lines:
        raise ValidationError("cart is empty")
    customer_info = _object(customer_info, "customer")
    name = _text(customer_info, "name")
    if not name:
        raise ValidationError("customer name is required")
    payment = _object(payment, "payment")

    fee = default_delivery_fee() if delivery_fee is None else delivery_fee
    totals = reconcile_totals(lines, fee, coupon_code)

    try:
        _reserve_stock(lines)
        if totals.coupon is not None:
            redeem_coupon(totals.coupon)

        order = Order(
            status="pending",
            user_id=str(user_id or GUEST),
            is_guest_order=(not user_id or user_id == GUEST),
            customer_name=name,
            customer_email=_text(customer_info, "email").lower(),
            customer_phone=_text(customer_info, "phone"),
            address=_text(customer_info, "address"),
            city=_text(customer_info, "city"),
            notes=_text(customer_info, "notes"),
            subtotal=totals.subtotal,
            delivery_fee=totals.delivery_fee,
            coupon_code=totals.coupon.code if totals.coupon else "",
            coupon_discount=totals.discount,
            total=totals.total,
            payment_method=(_text(payment, "method") or "cod").lower(),
            payment_status=(_text(payment, "status") or "pending").lower(),
            payment_id=_text(payment, "id") or None,
        )
        for l in lines:
            order.items.append(OrderItem(
                product_id=l.product_id,
                product_name=l.product_name,
                product_image=l.product_image,
                price=l.price,
                quantity=l.quantity,
                selected_options=l.selected_options,
                options_pricing={k: float(v) for k, v in l.options_pricing.items()},
                attachments=l.attachments,
                total_price=l.total_price,
            ))
        db.session.add(order)
        db.session.flush()
        order.code = f"ORD-{utcnow():%Y%m%d}-{order.id:04d}"

        customer = _customer_for(user_id)
        if customer is not None:
            customer.total_orders = (customer.total_orders or 0) + 1
            customer.total_spent = round_money(D(customer.total_spent) + totals.total)
            customer.last_order_date = utcnow()

        if clear_cart_of is not None:
            CartItem.query.filter_by(user_id=clear_cart_of).delete()

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("order %s placed by %s: total=%s coupon=%s", order.code, order.user_id, order.total,
             order.coupon_code or "-")
    return order


def order_stats():

    counts = dict(db.session.query(Order.status, func.count(Order.id)).group_by(Order.status).all())
    revenue = (
        db.session.query(func.coalesce(func.sum(Order.total), 0))
        .filter(Order.status != OrderStatus.CANCELLED.value)
        .scalar()
    )
    return {
        "totalOrders": sum(counts.values()),
        **{f"{s.value}Orders": counts.get(s.value, 0) for s in OrderStatus},
        "totalRevenue": float(round_money(revenue or 0)),
    }
