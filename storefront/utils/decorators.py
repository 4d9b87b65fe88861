# ------- storefront/utils/decorators.py -------
from functools import wraps

from flask import request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..errors import AuthError, ForbiddenError, ValidationError
from ..extensions import db
from ..model import Customer, GUEST


def current_customer(optional=False) -> Customer | None:
    verify_jwt_in_request(optional=optional)
    uid = get_jwt_identity()
    try:
        uid = int(uid)
    except (TypeError, ValueError):
        return None
    customer = db.session.get(Customer, uid)
    if customer is None or customer.status != "active":
        return None
    return customer


def role_required(*roles, message: str | None = None):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            c = current_customer()
            if not c:
                raise AuthError("Unauthorized")
            if c.role not in roles:
                raise ForbiddenError(message or "Forbidden")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


admin_required = role_required("admin", message="Admin access required")


def resolve_user_id(requested=None) -> str:
    """Whose cart or wishlist the request addresses.

    Without a token only the guest sentinel may be used. With a token the
    caller addresses their own id; admins may address anyone.
    """
    if requested is None:
        requested = request.args.get("userId")
        if requested is None and request.is_json:
            requested = (request.get_json(silent=True) or {}).get("userId")
    requested = str(requested).strip() if requested not in (None, "") else None

    c = current_customer(optional=True)
    if c is None:
        if requested not in (None, GUEST):
            raise AuthError("login required to access this user's data")
        return GUEST
    if requested in (None, str(c.id)):
        return str(c.id)
    if requested == GUEST or c.is_admin:
        return requested
    raise ForbiddenError("cannot access another user's data")


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data
