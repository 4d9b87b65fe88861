# storefront/order/routes.py
import logging
from datetime import timedelta

from flask import request

from . import bp
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..extensions import db
from ..model import InvalidTransition, Order
from ..services import cart_service, order_service
from ..utils.api import ok
from ..utils.dates import parse_iso8601
from ..utils.decorators import admin_required, current_customer, json_body, resolve_user_id
from ..utils.parsing import paginate, require_money

log = logging.getLogger(__name__)


def _get(order_id) -> Order:
    o = db.session.get(Order, order_id)
    if not o:
        raise NotFoundError("order not found")
    return o


def _delivery_fee(data):
    if data.get("deliveryFee") in (None, ""):
        return None
    return require_money(data.get("deliveryFee"), "deliveryFee")


def _customer_info(data, customer=None):
    raw = data.get("customer")
    if raw is not None and not isinstance(raw, dict):
        raise ValidationError("customer must be an object")
    info = dict(raw or {})
    if customer is not None:
        info.setdefault("name", customer.name)
        info.setdefault("email", customer.email)
        info.setdefault("phone", customer.phone)
        info.setdefault("city", customer.city)
    if "notes" in data and "notes" not in info:
        info["notes"] = data.get("notes")
    return info


@bp.get("/orders")
@admin_required
def list_orders():
    """
    Query params:
      - page, limit
      - status=pending|processing|shipped|delivered|cancelled
      - email=...
      - phone=...
      - code=ORD-...
      - start=YYYY-MM-DD
      - end=YYYY-MM-DD (inclusive)
    """
    q = Order.query

    status = request.args.get("status")
    phone = request.args.get("phone")
    email = request.args.get("email")
    code = request.args.get("code")
    start = parse_iso8601(request.args.get("start"))
    end = parse_iso8601(request.args.get("end"))

    if status: q = q.filter(Order.status == status)
    if phone: q = q.filter(Order.customer_phone == phone)
    if email: q = q.filter(Order.customer_email == email.strip().lower())
    if code: q = q.filter(Order.code == code)
    if start: q = q.filter(Order.created_at >= start)
    # make end inclusive for the whole day
    if end: q = q.filter(Order.created_at < end + timedelta(days=1))

    q = q.order_by(Order.created_at.desc(), Order.id.desc())
    page = paginate(q, request.args.get("page"), request.args.get("limit") or request.args.get("per_page"))
    return ok("orders", {"items": [o.as_api() for o in page["items"]], "meta": page["meta"]})


@bp.get("/orders/mine")
def my_orders():
    customer = current_customer()
    if customer is None:
        raise NotFoundError("user not found")
    orders = (
        Order.query.filter_by(user_id=str(customer.id))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return ok("orders", {"items": [o.as_api() for o in orders]})


@bp.get("/orders/stats")
@admin_required
def stats():
    return ok("order stats", order_service.order_stats())


@bp.get("/orders/<int:order_id>")
def get_order(order_id):
    o = _get(order_id)
    customer = current_customer(optional=True)
    if customer is None or not (customer.is_admin or o.user_id == str(customer.id)):
        raise ForbiddenError("cannot access this order")
    return ok("order", o.as_api())


@bp.put("/orders/<int:order_id>/status")
@admin_required
def update_status(order_id):
    o = _get(order_id)
    data = json_body()
    new_status = (data.get("status") or "").strip().lower()
    if not new_status:
        raise ValidationError("status is required")

    previous = o.status
    try:
        o.transition(new_status)
    except InvalidTransition as e:
        raise ValidationError(str(e), data={"status": previous})
    if "paymentStatus" in data:
        o.payment_status = (data.get("paymentStatus") or o.payment_status).lower()
    db.session.commit()
    log.info("order %s: %s -> %s", o.code, previous, o.status)
    return ok("Order status updated", o.as_api())


@bp.delete("/orders/<int:order_id>")
@admin_required
def delete_order(order_id):
    o = _get(order_id)
    db.session.delete(o)
    db.session.commit()
    return ok("Order deleted successfully", {"id": order_id})


@bp.post("/orders")
def create_order():
    """Place an order for explicit items, each priced from the current catalog."""
    data = json_body()
    customer = current_customer(optional=True)
    lines = order_service.lines_from_payload(data.get("items"))
    order = order_service.place_order(
        lines,
        _customer_info(data, customer),
        user_id=str(customer.id) if customer else None,
        delivery_fee=_delivery_fee(data),
        coupon_code=data.get("couponCode"),
        payment=data.get("payment"),
    )
    return ok("Order created successfully", order.as_api(), status=201)


@bp.post("/checkout")
def checkout():
    """Turn the caller's cart into an order and empty the cart."""
    data = json_body()
    user_id = resolve_user_id(data.get("userId"))
    customer = current_customer(optional=True)

    items = cart_service.list_lines(user_id)
    if not items:
        raise ValidationError("cart is empty")

    order = order_service.place_order(
        order_service.lines_from_cart(items),
        _customer_info(data, customer),
        user_id=user_id,
        delivery_fee=_delivery_fee(data),
        coupon_code=data.get("couponCode"),
        payment=data.get("payment"),
        clear_cart_of=user_id,
    )
    return ok("Order placed successfully", order.as_api(), status=201)


@bp.post("/orders/preview")
def preview_totals():
    """Reconcile totals for the caller's cart without placing anything."""
    data = json_body()
    user_id = resolve_user_id(data.get("userId"))
    items = cart_service.list_lines(user_id)
    fee = _delivery_fee(data)
    totals = order_service.reconcile_totals(
        order_service.lines_from_cart(items),
        order_service.default_delivery_fee() if fee is None else fee,
        data.get("couponCode"),
    )
    return ok("Order totals", totals.as_api())
