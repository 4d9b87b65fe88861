# storefront/cart/routes.py
import logging

from flask_jwt_extended import get_jwt_identity, jwt_required

from . import bp
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..model import GUEST, Product
from ..services import cart_service
from ..utils.api import ok
from ..utils.decorators import json_body, resolve_user_id
from ..utils.parsing import require_quantity

log = logging.getLogger(__name__)


def _cart_payload(user_id):
    lines = cart_service.list_lines(user_id)
    return {
        "userId": user_id,
        "items": [i.as_api() for i in lines],
        **cart_service.cart_totals(lines),
    }


def _active_product(product_id) -> Product:
    try:
        pid = int(product_id)
    except (TypeError, ValueError):
        raise ValidationError("productId is required")
    product = db.session.get(Product, pid)
    if not product or not product.is_active:
        raise NotFoundError("Product not found")
    return product


# ---- cart ------------------------------------------------------------------

@bp.get("/cart")
def get_cart():
    user_id = resolve_user_id()
    return ok("Cart fetched", _cart_payload(user_id))


@bp.post("/cart")
def add_to_cart():
    data = json_body()
    user_id = resolve_user_id(data.get("userId"))
    product = _active_product(data.get("productId"))
    qty = require_quantity(data.get("quantity", 1))

    selected = data.get("selectedOptions") or {}
    if not isinstance(selected, dict):
        raise ValidationError("selectedOptions must be an object")

    item, created = cart_service.add_line(user_id, product, qty, selected, data.get("attachments"))
    log.debug("cart %s: product %s %s", user_id, product.id, "added" if created else "merged")
    if created:
        return ok("Item added to cart", item.as_api(), status=201)
    return ok("Cart item quantity updated", item.as_api())


@bp.put("/cart/<int:item_id>")
def update_cart_item(item_id):
    data = json_body()
    user_id = resolve_user_id(data.get("userId"))
    item = cart_service.get_line(user_id, item_id)

    qty = require_quantity(data["quantity"]) if "quantity" in data else None
    selected = data.get("selectedOptions") if "selectedOptions" in data else None
    if selected is not None and not isinstance(selected, dict):
        raise ValidationError("selectedOptions must be an object")
    attachments = data.get("attachments") if "attachments" in data else None

    item = cart_service.update_line(item, quantity=qty, selected_options=selected, attachments=attachments)
    return ok("Cart item updated", item.as_api())


@bp.delete("/cart/<int:item_id>")
def remove_cart_item(item_id):
    user_id = resolve_user_id()
    cart_service.remove_line(user_id, item_id)
    return ok("Item removed from cart", {"id": item_id})


@bp.delete("/cart/product/<int:product_id>")
def remove_cart_product(product_id):
    user_id = resolve_user_id()
    removed = cart_service.remove_product_lines(user_id, product_id)
    return ok("Product removed from cart", {"productId": product_id, "removedCount": removed})


@bp.delete("/cart")
def clear_cart():
    user_id = resolve_user_id()
    removed = cart_service.clear_cart(user_id)
    return ok("Cart cleared", {"removedCount": removed})


@bp.get("/cart/count")
def cart_count():
    user_id = resolve_user_id()
    lines = cart_service.list_lines(user_id)
    return ok("Cart count", {"count": sum(i.quantity for i in lines), "lines": len(lines)})


# ---- guest -> account ------------------------------------------------------

@bp.post("/migrate-cart")
@jwt_required()
def migrate_cart():
    """Fold the guest cart into the cart of the logged-in caller."""
    data = json_body()
    from_user = str(data.get("fromUserId") or GUEST)
    if from_user != GUEST:
        raise ValidationError("only the guest cart can be migrated")
    result = cart_service.migrate_cart(str(get_jwt_identity()), from_user)
    return ok("Cart migrated successfully", result)

