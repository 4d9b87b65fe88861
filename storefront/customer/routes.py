# storefront/customer/routes.py
import logging

from flask import request
from sqlalchemy import func, or_

from . import bp
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..model import CartItem, Customer, RefreshToken, WishlistItem
from ..utils.api import ok
from ..utils.dates import utcnow
from ..utils.decorators import admin_required, current_customer, json_body
from ..utils.parsing import paginate

log = logging.getLogger(__name__)

ROLES = {"customer", "admin"}
STATUSES = {"active", "inactive"}


def _counts_by_user(model, user_ids):
    rows = (
        db.session.query(model.user_id, func.count(model.id))
        .filter(model.user_id.in_(user_ids))
        .group_by(model.user_id)
        .all()
    )
    return dict(rows)


@bp.get("")
@admin_required
def list_customers():
    q = Customer.query
    search = (request.args.get("q") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.phone.ilike(like)))
    status = request.args.get("status")
    if status:
        q = q.filter(Customer.status == status)

    page = paginate(q.order_by(Customer.created_at.desc(), Customer.id.desc()),
                    request.args.get("page"), request.args.get("limit"))
    ids = [str(c.id) for c in page["items"]]
    carts = _counts_by_user(CartItem, ids)
    wishlists = _counts_by_user(WishlistItem, ids)

    items = []
    for c in page["items"]:
        row = c.as_dict()
        row["cartItemsCount"] = carts.get(str(c.id), 0)
        row["wishlistItemsCount"] = wishlists.get(str(c.id), 0)
        items.append(row)
    return ok("customers", {"items": items, "meta": page["meta"]})


@bp.get("/stats")
@admin_required
def customer_stats():
    total = Customer.query.count()
    active = Customer.query.filter_by(status="active").count()
    month_start = utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    new_this_month = Customer.query.filter(Customer.created_at >= month_start).count()
    with_orders = Customer.query.filter(Customer.total_orders > 0).count()
    return ok("customer stats", {
        "totalCustomers": total,
        "activeCustomers": active,
        "inactiveCustomers": total - active,
        "newThisMonth": new_this_month,
        "customersWithOrders": with_orders,
    })


@bp.get("/<int:customer_id>")
@admin_required
def get_customer(customer_id):
    c = db.session.get(Customer, customer_id)
    if not c:
        raise NotFoundError("Customer not found")
    return ok("customer", c.as_dict())


@bp.post("")
@admin_required
def create_customer():
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    name = (data.get("name") or "").strip()
    if not email or not name:
        raise ValidationError("email and name are required")
    if Customer.query.filter_by(email=email).first():
        raise ConflictError("Customer with this email already exists")

    role = (data.get("role") or "customer").lower()
    status = (data.get("status") or "active").lower()
    if role not in ROLES:
        raise ValidationError("role must be 'customer' or 'admin'")
    if status not in STATUSES:
        raise ValidationError("status must be 'active' or 'inactive'")

    c = Customer(
        email=email,
        name=name,
        phone=(data.get("phone") or "").strip(),
        city=(data.get("city") or "").strip(),
        role=role,
        status=status,
    )
    password = data.get("password")
    if password:
        if len(password) < 6:
            raise ValidationError("password must be at least 6 characters")
        c.set_password(password)
    db.session.add(c)
    db.session.commit()
    log.info("customer %s created by admin", c.id)
    return ok("Customer created", c.as_dict(), status=201)


@bp.delete("/<int:customer_id>")
@admin_required
def delete_customer(customer_id):
    c = db.session.get(Customer, customer_id)
    if not c:
        raise NotFoundError("Customer not found")
    me = current_customer()
    if me is not None and me.id == c.id:
        raise ValidationError("you cannot delete your own account")

    # orders keep their own customer snapshot
    CartItem.query.filter_by(user_id=str(customer_id)).delete()
    WishlistItem.query.filter_by(user_id=str(customer_id)).delete()
    RefreshToken.query.filter_by(customer_id=customer_id).delete()
    db.session.delete(c)
    db.session.commit()
    log.info("customer %s deleted", customer_id)
    return ok("Customer deleted successfully", {"id": customer_id})
