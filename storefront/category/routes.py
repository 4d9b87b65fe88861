# --- category/routes.py ---
from flask import request

from . import bp
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..model import Category, Product
from ..utils.api import ok
from ..utils.decorators import admin_required, json_body
from ..utils.images import require_image
from ..utils.parsing import parse_bool, parse_int, parse_opt_int


# ------------------------ helpers ------------------------
def _get_active(cid) -> Category:
    c = Category.query.filter_by(id=cid, is_active=True).first()
    if not c:
        raise NotFoundError("Category not found")
    return c


def _apply(c: Category, data: dict, creating: bool):
    if creating or "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")
        if len(name) > 100:
            raise ValidationError("name cannot be more than 100 characters")
        c.name = name

    if "description" in data:
        description = (data.get("description") or "").strip()
        if len(description) > 500:
            raise ValidationError("description cannot be more than 500 characters")
        c.description = description

    image = data.get("image", data.get("mainImage"))
    if image:
        c.image = require_image(image)

    if "parentId" in data:
        parent_id = parse_opt_int(data.get("parentId"))
        if parent_id is not None:
            if parent_id == c.id:
                raise ValidationError("a category cannot be its own parent")
            _get_active(parent_id)
        c.parent_id = parent_id

    if "order" in data:
        c.sort_order = parse_int(data.get("order"), 0)
    if "isActive" in data and not creating:
        c.is_active = parse_bool(data.get("isActive"), True)
    c.fill_seo()


# ------------------------ CATEGORY ROUTES ------------------------

@bp.get("")
def list_categories():
    """
    parentId -> only subcategories of this id ("root" or "null" for top level)
    """
    qry = Category.query.filter_by(is_active=True)
    parent = (request.args.get("parentId") or "").strip().lower()
    if parent in {"root", "null"}:
        qry = qry.filter(Category.parent_id.is_(None))
    elif parent:
        qry = qry.filter(Category.parent_id == parse_int(parent, -1))
    items = qry.order_by(Category.sort_order.asc(), Category.name.asc()).all()
    return ok("categories", {"items": [c.as_dict() for c in items]})


@bp.get("/<int:cid>")
def get_category(cid):
    c = _get_active(cid)
    return ok("category", c.as_dict(with_children=True))


@bp.get("/<int:cid>/subcategories")
def list_subcategories(cid):
    c = _get_active(cid)
    return ok("subcategories", {"items": c.as_dict(with_children=True)["subcategories"]})


@bp.post("")
@admin_required
def create_category():
    c = Category(description="", image="", is_active=True, sort_order=0)
    _apply(c, json_body(), creating=True)
    db.session.add(c)
    db.session.commit()
    return ok("Category created", c.as_dict(), status=201)


@bp.put("/<int:cid>")
@admin_required
def update_category(cid):
    c = db.session.get(Category, cid)
    if not c:
        raise NotFoundError("Category not found")
    _apply(c, json_body(), creating=False)
    db.session.commit()
    return ok("Category updated", c.as_dict())


@bp.delete("/<int:cid>")
@admin_required
def delete_category(cid):
    active_products = Product.query.filter_by(category_id=cid, is_active=True).count()
    if active_products:
        raise ValidationError(f"Cannot delete category. It has {active_products} products.")
    c = db.session.get(Category, cid)
    if not c:
        raise NotFoundError("Category not found")
    c.is_active = False
    db.session.commit()
    return ok("Category deleted successfully", {"id": cid})
