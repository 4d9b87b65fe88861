import logging

from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..model import CartItem, GUEST, Product, options_key
from ..utils.images import clean_images

log = logging.getLogger(__name__)


def clean_attachments(raw) -> dict:
    """Normalize ``{text, images[]}``; every image must be a base64 data URL."""
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError("attachments must be an object")
    out = {}
    text = raw.get("text")
    if text:
        out["text"] = str(text)[:2000]
    images = clean_images(raw.get("images"), "attachments.images")
    if images:
        out["images"] = images
    return out


def has_attachments(attachments) -> bool:
    return bool(attachments) and bool(attachments.get("text") or attachments.get("images"))


def resolve_options(product: Product, selected_options):
    """Validate buyer selections against the product's schema; return the price deltas."""
    schema = product.option_schema
    problems = schema.validate(selected_options)
    if problems:
        raise ValidationError("invalid selectedOptions", data={"errors": problems})
    return schema.price_deltas(selected_options)


def find_line(user_id, product_id, selected_options) -> CartItem | None:
    return CartItem.query.filter_by(
        user_id=user_id,
        product_id=product_id,
        options_key=options_key(selected_options),
    ).first()


def list_lines(user_id):
    return CartItem.query.filter_by(user_id=user_id).order_by(CartItem.created_at.desc(), CartItem.id.desc()).all()


def add_line(user_id, product: Product, quantity, selected_options=None, attachments=None):
    """Add ``product`` to the cart of ``user_id``.

    Returns ``(item, created)``. An existing line with the same product and
    the same selected options absorbs the quantity instead of a new row
    being inserted.
    """
    selected_options = dict(selected_options or {})
    attachments = clean_attachments(attachments)
    deltas = resolve_options(product, selected_options)

    item = find_line(user_id, product.id, selected_options)
    if item:
        return _merge_into(item, quantity, attachments), False

    product_id = product.id
    item = CartItem(
        user_id=user_id,
        product_id=product.id,
        product_name=product.name,
        price=product.price,
        image=product.main_image or "",
        quantity=quantity,
        attachments=attachments,
    )
    item.set_options(selected_options, deltas)
    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError:
        # an identical line was inserted concurrently
        db.session.rollback()
        existing = find_line(user_id, product_id, selected_options)
        if existing is None:
            raise
        return _merge_into(existing, quantity, attachments), False
    return item, True


def _merge_into(item: CartItem, quantity, attachments) -> CartItem:
    item.quantity += quantity
    if has_attachments(attachments):
        item.attachments = attachments
    db.session.commit()
    return item


def get_line(user_id, item_id) -> CartItem:
    item = CartItem.query.filter_by(id=item_id, user_id=user_id).first()
    if not item:
        raise NotFoundError("Cart item not found")
    return item


def update_line(item: CartItem, quantity=None, selected_options=None, attachments=None):
    if quantity is not None:
        item.quantity = quantity

    if selected_options is not None:
        selected_options = dict(selected_options)
        product = item.product or db.session.get(Product, item.product_id)
        deltas = resolve_options(product, selected_options)
        clash = find_line(item.user_id, item.product_id, selected_options)
        if clash and clash.id != item.id:
            # the edited line now matches another one: fold it in
            clash.quantity += item.quantity
            if attachments is not None:
                clash.attachments = clean_attachments(attachments)
            elif has_attachments(item.attachments):
                clash.attachments = item.attachments
            db.session.delete(item)
            db.session.commit()
            return clash
        item.set_options(selected_options, deltas)

    if attachments is not None:
        item.attachments = clean_attachments(attachments)

    db.session.commit()
    return item


def remove_line(user_id, item_id):
    item = get_line(user_id, item_id)
    db.session.delete(item)
    db.session.commit()


def remove_product_lines(user_id, product_id) -> int:
    removed = CartItem.query.filter_by(user_id=user_id, product_id=product_id).delete()
    db.session.commit()
    if not removed:
        raise NotFoundError("Product not found in cart")
    return removed


def clear_cart(user_id, commit=True) -> int:
    removed = CartItem.query.filter_by(user_id=user_id).delete()
    if commit:
        db.session.commit()
    return removed


def cart_totals(lines):
    from .order_service import items_subtotal
    return {
        "itemsCount": sum(i.quantity for i in lines),
        "subtotal": float(items_subtotal((i.price, i.option_deltas(), i.quantity) for i in lines)),
    }


def migrate_cart(to_user, from_user=GUEST):
    """Move every line of ``from_user`` into the cart of ``to_user``.

    Lines with the same product and options are merged: quantities add up and
    the migrated line's attachments win when it has any.
    """
    if not to_user or to_user == from_user:
        raise ValidationError("Valid user ID is required")

    migrated = merged = 0
    for guest_item in CartItem.query.filter_by(user_id=from_user).all():
        existing = CartItem.query.filter_by(
            user_id=to_user,
            product_id=guest_item.product_id,
            options_key=guest_item.options_key,
        ).first()

        if existing:
            existing.quantity += guest_item.quantity
            if has_attachments(guest_item.attachments):
                existing.attachments = guest_item.attachments
            db.session.delete(guest_item)
            merged += 1
        else:
            guest_item.user_id = to_user
            migrated += 1
        # keep the unique constraint satisfied row by row
        db.session.flush()

    db.session.commit()
    log.info("cart migrated %s -> %s: %s moved, %s merged", from_user, to_user, migrated, merged)
    return {"migratedCount": migrated, "mergedCount": merged, "totalProcessed": migrated + merged}
