from sqlalchemy.exc import IntegrityError

from . import bp
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..model import Product, WishlistItem
from ..utils.api import ok
from ..utils.decorators import json_body, resolve_user_id


@bp.get("")
def get_wishlist():
    user_id = resolve_user_id()
    items = (
        WishlistItem.query.filter_by(user_id=user_id)
        .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        .all()
    )
    return ok("Wishlist fetched", {"userId": user_id, "items": [i.as_api() for i in items], "count": len(items)})


@bp.post("")
def add_to_wishlist():
    data = json_body()
    user_id = resolve_user_id(data.get("userId"))
    try:
        pid = int(data.get("productId"))
    except (TypeError, ValueError):
        raise ValidationError("productId is required")

    product = db.session.get(Product, pid)
    if not product or not product.is_active:
        raise NotFoundError("Product not found")
    if WishlistItem.query.filter_by(user_id=user_id, product_id=pid).first():
        raise ValidationError("Product already in wishlist")

    item = WishlistItem(
        user_id=user_id,
        product_id=pid,
        product_name=product.name,
        price=product.price,
        image=product.main_image or "",
    )
    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError:
        # lost a race against an identical add
        db.session.rollback()
        raise ValidationError("Product already in wishlist")
    return ok("Added to wishlist", item.as_api(), status=201)


@bp.get("/check/<int:product_id>")
def check_wishlist(product_id):
    user_id = resolve_user_id()
    exists = WishlistItem.query.filter_by(user_id=user_id, product_id=product_id).first() is not None
    return ok("Wishlist check", {"productId": product_id, "inWishlist": exists})


@bp.delete("/<int:item_id>")
def remove_from_wishlist(item_id):
    user_id = resolve_user_id()
    item = WishlistItem.query.filter_by(id=item_id, user_id=user_id).first()
    if not item:
        raise NotFoundError("Wishlist item not found")
    db.session.delete(item)
    db.session.commit()
    return ok("Removed from wishlist", {"id": item_id})


@bp.delete("/product/<int:product_id>")
def remove_product_from_wishlist(product_id):
    user_id = resolve_user_id()
    removed = WishlistItem.query.filter_by(user_id=user_id, product_id=product_id).delete()
    if not removed:
        db.session.rollback()
        raise NotFoundError("Product not found in wishlist")
    db.session.commit()
    return ok("Removed from wishlist", {"productId": product_id})
