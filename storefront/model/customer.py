# --- storefront/model/customer.py ---
import secrets
from datetime import timedelta

from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash

from ..extensions import db
from ..utils.dates import iso, utcnow
from ..utils.money import to_float


class Customer(db.Model):
    __tablename__ = "customer"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(180), nullable=False)
    phone = db.Column(db.String(50), nullable=False, default="")
    city = db.Column(db.String(120), nullable=False, default="")
    password_hash = db.Column(db.String(255), nullable=False, default="")
    role = db.Column(db.String(20), nullable=False, default="customer", index=True)   # customer | admin
    status = db.Column(db.String(20), nullable=False, default="active", index=True)   # active | inactive
    is_verified = db.Column(db.Boolean, nullable=False, default=False)

    # simple stats, maintained by the order flow
    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    last_order_date = db.Column(db.DateTime, nullable=True)

    otp_code = db.Column(db.String(8), nullable=True)
    otp_expires_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, server_default=func.now())

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password) -> bool:
        return bool(self.password_hash) and check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == "admin"

    def generate_otp(self, ttl_minutes=10) -> str:
        code = f"{secrets.randbelow(9000) + 1000}"
        self.otp_code = code
        self.otp_expires_at = utcnow() + timedelta(minutes=ttl_minutes)
        return code

    def verify_otp(self, code) -> tuple[bool, str]:
        if not self.otp_code:
            return False, "no verification code was issued"
        if self.otp_expires_at and utcnow() > self.otp_expires_at:
            return False, "verification code expired"
        if not secrets.compare_digest(self.otp_code, str(code or "")):
            return False, "verification code is incorrect"
        self.otp_code = None
        self.otp_expires_at = None
        self.is_verified = True
        return True, "verified"

    def as_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "city": self.city,
            "role": self.role,
            "status": self.status,
            "isVerified": self.is_verified,
            "totalOrders": self.total_orders,
            "totalSpent": to_float(self.total_spent),
            "lastOrderDate": iso(self.last_order_date),
            "createdAt": iso(self.created_at),
        }


class RefreshToken(db.Model):
    __tablename__ = "refresh_token"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, index=True)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
