from io import BytesIO

from flask import current_app, request, send_file, url_for
from sqlalchemy import asc, desc, or_

from . import bp
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..model import CartItem, Category, OptionSchema, Product, ProductType, Review, WishlistItem, default_schema
from ..services.export_service import products_frame
from ..utils.api import ok
from ..utils.decorators import admin_required, current_customer, json_body
from ..utils.images import clean_images, require_image
from ..utils.money import D
from ..utils.parsing import paginate, parse_bool, parse_int, parse_opt_int, require_money


# ---------- helpers ----------
def _ep(name: str) -> str:
    return f"{bp.name}.{name}"


def _parse_opt_money(v):
    if v is None or (isinstance(v, str) and v.strip() == ""):
        return None
    try:
        return D(v)
    except ValueError:
        return None


def _sort_products(query, sort):
    sort = (sort or "").strip()
    mapping = {
        "id": asc(Product.id), "-id": desc(Product.id),
        "name": asc(Product.name), "-name": desc(Product.name),
        "price": asc(Product.price), "-price": desc(Product.price),
        "stock": asc(Product.stock), "-stock": desc(Product.stock),
        "createdAt": asc(Product.created_at), "-createdAt": desc(Product.created_at),
    }
    col = mapping.get(sort, desc(Product.created_at))  # default newest first
    return query.order_by(col, desc(Product.id))


def _get_product(pid, active_only=True) -> Product:
    product = db.session.get(Product, pid)
    if not product or (active_only and not product.is_active):
        raise NotFoundError("Product not found")
    return product


def _clean_specifications(raw):
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("specifications must be a list")
    out = []
    for spec in raw:
        if not isinstance(spec, dict) or not spec.get("name"):
            raise ValidationError("each specification needs a name")
        out.append({"name": str(spec["name"]).strip(), "value": str(spec.get("value") or "").strip()})
    return out


def _clean_tags(raw):
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, list):
        raise ValidationError("tags must be a list")
    return [str(t).strip() for t in raw if str(t).strip()]


def _apply(p: Product, data: dict, creating: bool):
    if creating or "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")
        if len(name) > 200:
            raise ValidationError("name cannot be more than 200 characters")
        p.name = name

    if creating or "description" in data:
        description = (data.get("description") or "").strip()
        if not description:
            raise ValidationError("description is required")
        if len(description) > 2000:
            raise ValidationError("description cannot be more than 2000 characters")
        p.description = description

    if creating or "price" in data:
        p.price = require_money(data.get("price"), "price")

    if "originalPrice" in data:
        raw = data.get("originalPrice")
        p.original_price = None if raw in (None, "") else require_money(raw, "originalPrice")

    if creating or "stock" in data:
        stock = parse_opt_int(data.get("stock"))
        if stock is None or stock < 0:
            raise ValidationError("stock must be an integer >= 0")
        p.stock = stock

    if creating or "categoryId" in data:
        cid = parse_opt_int(data.get("categoryId"))
        if cid is None:
            raise ValidationError("categoryId is required")
        if not Category.query.filter_by(id=cid, is_active=True).first():
            raise NotFoundError(f"Category {cid} not found")
        p.category_id = cid

    if creating or "productType" in data or "dynamicOptions" in data:
        try:
            product_type = ProductType.parse(data.get("productType") or p.product_type or ProductType.SASH_AND_CAP.value)
            raw_options = data.get("dynamicOptions")
            if raw_options == []:
                raw_options = None
            if raw_options is None and not creating and "dynamicOptions" not in data \
                    and product_type.value == p.product_type:
                schema = p.option_schema
            else:
                schema = OptionSchema.from_api(product_type, raw_options)
        except ValueError as e:
            raise ValidationError(str(e))
        p.option_schema = schema

    if creating or "mainImage" in data:
        p.main_image = require_image(data.get("mainImage"), "mainImage")
    if "detailedImages" in data:
        p.detailed_images = clean_images(data.get("detailedImages"), "detailedImages")
    if "specifications" in data:
        p.specifications = _clean_specifications(data.get("specifications"))
    if "tags" in data:
        p.tags = _clean_tags(data.get("tags"))

    if "isActive" in data:
        p.is_active = parse_bool(data.get("isActive"), True)
    if "featured" in data:
        p.featured = parse_bool(data.get("featured"))
    if "seoTitle" in data:
        p.seo_title = (data.get("seoTitle") or "")[:60] or None
    if "seoDescription" in data:
        p.seo_description = (data.get("seoDescription") or "")[:160] or None
    p.fill_seo()


# ---------- routes ----------
# GET /api/products
@bp.get("")
def list_products():
    """
    Query params:
      q            -> substring match on name/description
      categoryId   -> int
      productType  -> one of the product types
      featured     -> bool
      minPrice     -> number
      maxPrice     -> number
      inStock      -> bool (True = stock > 0, False = stock <= 0)
      sort         -> id, -id, name, -name, price, -price, stock, -stock, createdAt, -createdAt
      page         -> int, default 1
      limit        -> int, default 20 (cap 100)
    """
    args = request.args
    query = Product.query.filter(Product.is_active.is_(True))

    q = (args.get("q") or "").strip()
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))

    category_id = parse_opt_int(args.get("categoryId"))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)

    product_type = (args.get("productType") or "").strip().lower()
    if product_type:
        query = query.filter(Product.product_type == product_type)

    if args.get("featured") is not None:
        query = query.filter(Product.featured.is_(parse_bool(args.get("featured"))))

    min_price = _parse_opt_money(args.get("minPrice"))
    max_price = _parse_opt_money(args.get("maxPrice"))
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)

    if args.get("inStock") is not None:
        if parse_bool(args.get("inStock")):
            query = query.filter(Product.stock > 0)
        else:
            query = query.filter(Product.stock <= 0)

    query = _sort_products(query, args.get("sort"))
    page = paginate(query, args.get("page"), args.get("limit") or args.get("per_page"))
    return ok("Products fetched", {"items": [p.as_api() for p in page["items"]], "meta": page["meta"]})


# GET /api/products/<id>
@bp.get("/<int:pid>")
def get_product(pid):
    return ok("Product fetched", _get_product(pid).as_api())


@bp.get("/category/<int:cid>")
def list_by_category(cid):
    if not Category.query.filter_by(id=cid, is_active=True).first():
        raise NotFoundError("Category not found")
    query = _sort_products(Product.query.filter_by(category_id=cid, is_active=True), request.args.get("sort"))
    page = paginate(query, request.args.get("page"), request.args.get("limit"))
    return ok("Products fetched", {"items": [p.as_api() for p in page["items"]], "meta": page["meta"]})


@bp.get("/default-options/<product_type>")
def default_options(product_type):
    try:
        schema = default_schema(product_type)
    except ValueError as e:
        raise ValidationError(str(e))
    return ok("Default options", {"productType": schema.product_type.value, "dynamicOptions": schema.as_api()})


@bp.get("/low-stock")
@admin_required
def low_stock():
    threshold = parse_int(request.args.get("threshold"), current_app.config["LOW_STOCK_THRESHOLD"])
    items = (
        Product.query.filter(Product.is_active.is_(True), Product.stock <= threshold)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )
    return ok("Low stock products", {"threshold": threshold, "items": [p.summary() for p in items]})


# POST /api/products
@bp.post("")
@admin_required
def create_product():
    p = Product(is_active=True, featured=False, detailed_images=[], specifications=[], tags=[])
    _apply(p, json_body(), creating=True)
    db.session.add(p)
    db.session.commit()

    resp = ok("Product created", p.as_api(), status=201)
    resp.headers["Location"] = url_for(_ep("get_product"), pid=p.id, _external=True)
    return resp


# PUT /api/products/<id>
@bp.put("/<int:pid>")
@admin_required
def update_product(pid):
    p = _get_product(pid, active_only=False)
    _apply(p, json_body(), creating=False)
    db.session.commit()
    return ok("Product updated", p.as_api())


# DELETE /api/products/<id>
@bp.delete("/<int:pid>")
@admin_required
def delete_product(pid):
    p = _get_product(pid, active_only=False)
    # order lines keep their own snapshot
    for model in (Review, CartItem, WishlistItem):
        model.query.filter_by(product_id=pid).delete()
    db.session.delete(p)
    db.session.commit()
    return ok(f"Product {pid} deleted", {"id": pid})


@bp.get("/export")
@admin_required
def export_products():
    """
    Export all products as a CSV file.
    """
    df = products_frame()

    output = BytesIO()
    output.write(df.to_csv(index=False).encode("utf-8"))
    output.seek(0)

    return send_file(
        output,
        as_attachment=True,
        download_name="products_export.csv",
        mimetype="text/csv",
    )


# ---------- reviews ----------
@bp.get("/<int:pid>/reviews")
def list_reviews(pid):
    _get_product(pid)
    reviews = Review.query.filter_by(product_id=pid).order_by(Review.created_at.desc(), Review.id.desc()).all()
    rated = [r.rating for r in reviews if r.rating is not None]
    return ok("Reviews fetched", {
        "items": [r.as_api() for r in reviews],
        "count": len(reviews),
        "averageRating": round(sum(rated) / len(rated), 2) if rated else None,
    })


@bp.post("/<int:pid>/reviews")
def create_review(pid):
    _get_product(pid)
    data = json_body()

    customer = current_customer(optional=True)
    name = (data.get("customerName") or (customer.name if customer else "")).strip()
    comment = (data.get("comment") or "").strip()
    if not name or not comment:
        raise ValidationError("customerName and comment are required")

    rating = None
    if data.get("rating") not in (None, ""):
        rating = parse_opt_int(data.get("rating"))
        if rating is None or not 1 <= rating <= 5:
            raise ValidationError("rating must be an integer between 1 and 5")

    review = Review(
        product_id=pid,
        customer_id=str(customer.id) if customer else str(data.get("customerId") or "guest"),
        customer_name=name[:180],
        rating=rating,
        comment=comment[:2000],
    )
    db.session.add(review)
    db.session.commit()
    return ok("Review added", review.as_api(), status=201)
