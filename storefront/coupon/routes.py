# storefront/coupon/routes.py
from flask import request

from . import bp
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..model import Coupon
from ..services.coupon_service import (
    create_coupon_from_payload,
    update_coupon_from_payload,
    validate_coupon,
)
from ..utils.api import ok
from ..utils.decorators import admin_required, json_body
from ..utils.money import D, round_money


def _get(coupon_id) -> Coupon:
    c = db.session.get(Coupon, coupon_id)
    if not c:
        raise NotFoundError("Coupon not found")
    return c


@bp.post("")
@admin_required
def create_coupon():
    c = create_coupon_from_payload(json_body())
    return ok("Coupon created", c.as_api(), status=201)


@bp.get("")
@admin_required
def list_coupons():
    q = Coupon.query
    active = request.args.get("isActive")
    if active is not None:
        q = q.filter(Coupon.is_active.is_(active.lower() == "true"))
    items = q.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()
    return ok("ok", {"items": [c.as_api() for c in items]})


@bp.get("/<int:coupon_id>")
@admin_required
def get_coupon(coupon_id):
    return ok("ok", _get(coupon_id).as_api())


@bp.put("/<int:coupon_id>")
@admin_required
def update_coupon(coupon_id):
    c = update_coupon_from_payload(_get(coupon_id), json_body())
    return ok("Coupon updated", c.as_api())


@bp.delete("/<int:coupon_id>")
@admin_required
def delete_coupon(coupon_id):
    c = _get(coupon_id)
    db.session.delete(c)
    db.session.commit()
    return ok("Coupon deleted successfully", {"id": coupon_id})


@bp.post("/validate")
def validate():
    """Preview a coupon against an order amount; usage is not recorded."""
    data = json_body()
    code = data.get("code")
    if not code:
        raise ValidationError("Coupon code is required")
    try:
        amount = round_money(data.get("totalAmount") or 0)
    except ValueError:
        raise ValidationError("totalAmount must be numeric")
    if amount < 0:
        raise ValidationError("totalAmount must be >= 0")

    coupon, discount = validate_coupon(code, amount)
    return ok("Coupon is valid", {
        "coupon": coupon.as_api(),
        "discountAmount": float(discount),
        "finalAmount": float(round_money(amount - D(discount))),
    })
