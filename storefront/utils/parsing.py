# storefront/utils/parsing.py
from ..errors import ValidationError
from .money import D


def parse_bool(v, default=False):
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_int(v, default=0):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def parse_opt_int(v):
    if v is None:
        return None
    if isinstance(v, str) and v.strip().lower() in {"", "null"}:
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def require_money(v, field, allow_zero=True):
    try:
        value = D(v)
    except ValueError:
        raise ValidationError(f"{field} must be numeric")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    return value


def require_quantity(v, field="quantity"):
    if isinstance(v, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        qty = int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if qty < 1:
        raise ValidationError(f"{field} must be >= 1")
    return qty


def paginate(query, page, per_page, default_per_page=20):
    page = max(parse_int(page, 1), 1)
    per_page = min(max(parse_int(per_page, default_per_page), 1), 100)
    items = query.paginate(page=page, per_page=per_page, error_out=False)
    return {
        "meta": {
            "page": items.page,
            "pages": items.pages or 1,
            "per_page": per_page,
            "total": items.total,
        },
        "items": items.items,
    }
