from flask import request

from . import bp
from ..errors import NotFoundError
from ..extensions import db
from ..model import Review
from ..utils.api import ok
from ..utils.decorators import admin_required
from ..utils.parsing import paginate, parse_opt_int


@bp.get("")
@admin_required
def list_reviews():
    q = Review.query
    product_id = parse_opt_int(request.args.get("productId"))
    if product_id is not None:
        q = q.filter(Review.product_id == product_id)
    q = q.order_by(Review.created_at.desc(), Review.id.desc())
    page = paginate(q, request.args.get("page"), request.args.get("limit"))
    return ok("reviews", {"items": [r.as_api() for r in page["items"]], "meta": page["meta"]})


@bp.delete("/<int:review_id>")
@admin_required
def delete_review(review_id):
    r = db.session.get(Review, review_id)
    if not r:
        raise NotFoundError("Review not found")
    db.session.delete(r)
    db.session.commit()
    return ok("Review deleted", {"id": review_id})
