# --- storefront/model/coupon.py ---
from enum import Enum

from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import iso
from ..utils.money import to_float


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Coupon(db.Model):
    __tablename__ = "coupon"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)   # stored upper-case
    description = db.Column(db.String(255), nullable=False, default="")

    discount_type = db.Column(db.String(16), nullable=False, default=DiscountType.PERCENTAGE.value)
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    min_order_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    max_usage = db.Column(db.Integer, nullable=True)        # global usage cap
    used_count = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    expires_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    @staticmethod
    def normalize_code(code) -> str:
        return (code or "").strip().upper()

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discountType": self.discount_type,
            "discountValue": to_float(self.discount_value),
            "minOrderAmount": to_float(self.min_order_amount),
            "maxUsage": self.max_usage,
            "usedCount": self.used_count,
            "isActive": self.is_active,
            "expiresAt": iso(self.expires_at),
            "createdAt": iso(self.created_at),
        }
