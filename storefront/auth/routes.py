import logging
import uuid
from datetime import timedelta

from flask import current_app
from flask_jwt_extended import create_access_token, jwt_required

from . import bp
from ..errors import AuthError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..model import Customer, RefreshToken
from ..utils.api import ok
from ..utils.dates import utcnow
from ..utils.decorators import current_customer, json_body

log = logging.getLogger(__name__)

MIN_PASSWORD = 6


# --- helper: create & persist a token pair ---
def _issue_tokens(customer_id: int):
    access_token = create_access_token(identity=str(customer_id))
    refresh_token_str = uuid.uuid4().hex
    db.session.add(RefreshToken(
        customer_id=customer_id,
        token=refresh_token_str,
        expires_at=utcnow() + timedelta(days=current_app.config["REFRESH_TOKEN_TTL_DAYS"]),
    ))
    return access_token, refresh_token_str


def _check_password_rules(password, field="password"):
    if not password or len(password) < MIN_PASSWORD:
        raise ValidationError(f"{field} must be at least {MIN_PASSWORD} characters")


def _by_email(email) -> Customer | None:
    email = (email or "").strip().lower()
    return Customer.query.filter_by(email=email).first() if email else None


@bp.post("/register")
def register():
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()

    if not email or not password or not name:
        raise ValidationError("email, password and name are required")
    if "@" not in email:
        raise ValidationError("email is invalid")
    _check_password_rules(password)
    if _by_email(email):
        raise ConflictError("An account with this email already exists")

    customer = Customer(
        email=email,
        name=name,
        phone=(data.get("phone") or "").strip(),
        city=(data.get("city") or "").strip(),
        role="customer",
    )
    customer.set_password(password)
    db.session.add(customer)
    db.session.commit()
    log.info("customer %s registered", customer.id)

    return ok("Account created successfully", {"user": customer.as_dict()}, status=201)


@bp.post("/login")
def login():
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        raise ValidationError("Email and password are required")

    customer = _by_email(email)
    if not customer or not customer.check_password(password):
        raise AuthError("Invalid email or password")
    if customer.status != "active":
        raise AuthError("Account is inactive")

    access_token, refresh_token = _issue_tokens(customer.id)
    db.session.commit()

    return ok("You've logged in successfully", {
        "user": customer.as_dict(),
        "isAdmin": customer.is_admin,
        "token": access_token,
        "refresh_token": refresh_token,
    })


@bp.post("/refresh")
def refresh():
    data = json_body()
    token_str = data.get("refresh_token")
    if not token_str:
        raise ValidationError("refresh_token is required")

    refresh_row = RefreshToken.query.filter_by(token=token_str).first()
    if not refresh_row or refresh_row.expires_at < utcnow():
        raise AuthError("Invalid or expired refresh token")

    customer_id = refresh_row.customer_id

    # ROTATE: refresh tokens are single-use
    db.session.delete(refresh_row)
    db.session.flush()

    new_access, new_refresh = _issue_tokens(customer_id)
    db.session.commit()

    return ok("Token refreshed", {"token": new_access, "refresh_token": new_refresh})


@bp.get("/me")
@jwt_required()
def me():
    customer = current_customer()
    if not customer:
        raise NotFoundError("user not found")
    return ok("me", {"user": customer.as_dict()})


@bp.post("/change-password")
def change_password():
    data = json_body()
    email = data.get("email")
    current_password = data.get("currentPassword") or ""
    new_password = data.get("newPassword") or ""

    if not email or not current_password or not new_password:
        raise ValidationError("email, currentPassword and newPassword are required")
    _check_password_rules(new_password, "newPassword")

    customer = _by_email(email)
    if not customer:
        raise NotFoundError("user not found")
    if not customer.check_password(current_password):
        raise AuthError("Current password is incorrect")

    customer.set_password(new_password)
    # outstanding refresh tokens die with the old password
    RefreshToken.query.filter_by(customer_id=customer.id).delete()
    db.session.commit()
    return ok("Password changed successfully")


@bp.post("/request-otp")
def request_otp():
    data = json_body()
    customer = _by_email(data.get("email"))
    if not customer:
        raise NotFoundError("user not found")

    code = customer.generate_otp(current_app.config["OTP_TTL_MINUTES"])
    db.session.commit()
    # delivery channel is external; the code only leaves the process in debug setups
    log.info("verification code issued for customer %s", customer.id)

    payload = {"expiresAt": customer.otp_expires_at.isoformat()}
    if current_app.config.get("OTP_DEBUG_RETURN"):
        payload["otp"] = code
    return ok("Verification code sent", payload)


@bp.post("/verify-otp")
def verify_otp():
    data = json_body()
    customer = _by_email(data.get("email"))
    if not customer:
        raise NotFoundError("user not found")

    valid, message = customer.verify_otp(data.get("otp"))
    if not valid:
        db.session.rollback()
        raise ValidationError(message)
    db.session.commit()
    return ok("Verified successfully", {"user": customer.as_dict()})
