# storefront/services/export_service.py
import pandas as pd

from ..model import Product

COLUMNS = [
    "ID", "Name", "Product Type", "Category ID", "Category", "Price", "Original Price",
    "Stock", "Featured", "Active", "Tags",
]


def products_frame(products=None) -> pd.DataFrame:
    """One row per product, in id order."""
    if products is None:
        products = Product.query.order_by(Product.id.asc()).all()
    rows = [{
        "ID": p.id,
        "Name": p.name,
        "Product Type": p.product_type,
        "Category ID": p.category_id,
        "Category": p.category.name if p.category else "",
        "Price": float(p.price),
        "Original Price": float(p.original_price) if p.original_price is not None else None,
        "Stock": p.stock,
        "Featured": p.featured,
        "Active": p.is_active,
        "Tags": ", ".join(p.tags or []),
    } for p in products]
    return pd.DataFrame(rows, columns=COLUMNS)
