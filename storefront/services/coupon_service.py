# storefront/services/coupon_service.py
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from sqlalchemy import or_, update

from ..errors import ConflictError, CouponRejected, NotFoundError, ValidationError
from ..extensions import db
from ..model import Coupon, DiscountType
from ..utils.dates import parse_iso8601, utcnow
from ..utils.money import D, ZERO, round_money
from ..utils.parsing import parse_bool, parse_opt_int, require_money

log = logging.getLogger(__name__)


class CouponRejection(Enum):
    INACTIVE = "coupon inactive"
    EXPIRED = "coupon expired"
    USAGE_LIMIT = "usage limit reached"
    BELOW_MINIMUM = "order below minimum amount for coupon eligibility"


@dataclass(frozen=True)
class DiscountResult:
    discount: Decimal | None = None
    reason: CouponRejection | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None


def calculate_discount(coupon: Coupon, subtotal, now=None) -> DiscountResult:
    """Decide whether ``coupon`` applies to ``subtotal`` and compute the discount.

    Read-only: usage is only recorded by :func:`redeem_coupon`.
    """
    subtotal = max(D(subtotal), ZERO)
    now = now or utcnow()

    if not coupon.is_active:
        return DiscountResult(reason=CouponRejection.INACTIVE)
    if coupon.expires_at is not None and coupon.expires_at < now:
        return DiscountResult(reason=CouponRejection.EXPIRED)
    if coupon.max_usage is not None and (coupon.used_count or 0) >= coupon.max_usage:
        return DiscountResult(reason=CouponRejection.USAGE_LIMIT)
    if subtotal < D(coupon.min_order_amount or 0):
        return DiscountResult(reason=CouponRejection.BELOW_MINIMUM)

    value = max(D(coupon.discount_value or 0), ZERO)
    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = subtotal * value / Decimal("100")
    else:
        discount = value

    # never discount more than the order is worth
    discount = min(round_money(discount), subtotal)
    return DiscountResult(discount=discount)


def _clean_code(code) -> str:
    if code is not None and not isinstance(code, str):
        raise ValidationError("coupon code must be a string")
    return Coupon.normalize_code(code)


def find_coupon(code) -> Coupon | None:
    code = _clean_code(code)
    if not code:
        return None
    return Coupon.query.filter(Coupon.code == code).first()


def validate_coupon(code, subtotal):
    """Return ``(coupon, discount)`` or raise with the rejection reason."""
    coupon = find_coupon(code)
    if coupon is None:
        raise NotFoundError("coupon not found")
    result = calculate_discount(coupon, subtotal)
    if not result.ok:
        raise CouponRejected(result.reason, code=coupon.code)
    return coupon, result.discount


def redeem_coupon(coupon: Coupon):
    """Record one use of ``coupon`` inside the caller's transaction.

    The increment is a single conditional UPDATE so concurrent checkouts can
    never push ``used_count`` past ``max_usage``.
    """
    stmt = (
        update(Coupon)
        .where(Coupon.id == coupon.id)
        .where(Coupon.is_active.is_(True))
        .where(or_(Coupon.max_usage.is_(None), Coupon.used_count < Coupon.max_usage))
        .values(used_count=Coupon.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise CouponRejected(CouponRejection.USAGE_LIMIT, code=coupon.code)
    db.session.refresh(coupon)
    log.info("coupon %s redeemed (%s/%s)", coupon.code, coupon.used_count, coupon.max_usage or "-")


# ---- admin payload handling -------------------------------------------------

def _apply_payload(c: Coupon, data: dict, creating: bool):
    if creating or "code" in data:
        code = _clean_code(data.get("code"))
        if not code:
            raise ValidationError("code is required")
        existing = Coupon.query.filter(Coupon.code == code, Coupon.id != c.id).first()
        if existing:
            raise ConflictError("Coupon code already exists")
        c.code = code

    if creating or "discountType" in data:
        dtype = (data.get("discountType") or DiscountType.PERCENTAGE.value).lower().strip()
        if dtype not in {t.value for t in DiscountType}:
            raise ValidationError("discountType must be 'percentage' or 'fixed'")
        c.discount_type = dtype

    if creating or "discountValue" in data:
        c.discount_value = require_money(data.get("discountValue"), "discountValue", allow_zero=False)

    if "minOrderAmount" in data:
        c.min_order_amount = require_money(data.get("minOrderAmount") or 0, "minOrderAmount")
    elif creating:
        c.min_order_amount = ZERO

    if "maxUsage" in data:
        raw = data.get("maxUsage")
        max_usage = parse_opt_int(raw)
        if raw not in (None, "") and (max_usage is None or max_usage < 1):
            raise ValidationError("maxUsage must be a positive integer")
        if max_usage is not None and max_usage < (c.used_count or 0):
            raise ValidationError(f"maxUsage cannot be below the current usage ({c.used_count})")
        c.max_usage = max_usage

    if "isActive" in data:
        c.is_active = parse_bool(data.get("isActive"), True)
    elif creating:
        c.is_active = True

    if "expiresAt" in data:
        raw = data.get("expiresAt")
        expires_at = parse_iso8601(raw)
        if raw and not expires_at:
            raise ValidationError("Invalid datetime format for expiresAt")
        c.expires_at = expires_at

    if "description" in data:
        c.description = (data.get("description") or "").strip()[:255]


def create_coupon_from_payload(data: dict) -> Coupon:
    c = Coupon(used_count=0)
    _apply_payload(c, data, creating=True)
    db.session.add(c)
    db.session.commit()
    log.info("coupon %s created", c.code)
    return c


def update_coupon_from_payload(c: Coupon, data: dict) -> Coupon:
    _apply_payload(c, data, creating=False)
    db.session.commit()
    return c
