# storefront/model/cart.py
import json
from decimal import Decimal

from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import iso
from ..utils.money import D, round_money, to_float

GUEST = "guest"


def options_key(selected_options) -> str:
    """Canonical form of a selected-options mapping, used for line identity."""
    return json.dumps(selected_options or {}, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class CartItem(db.Model):
    __tablename__ = "cart_item"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", "options_key", name="uq_cart_line"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, default=GUEST, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)

    # snapshot taken when the line was first added
    product_name = db.Column(db.String(200), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    image = db.Column(db.Text, nullable=False, default="")

    quantity = db.Column(db.Integer, nullable=False, default=1)
    selected_options = db.Column(db.JSON, nullable=False, default=dict)
    options_key = db.Column(db.String(1024), nullable=False, default="{}")
    options_pricing = db.Column(db.JSON, nullable=False, default=dict)   # option name -> price delta
    attachments = db.Column(db.JSON, nullable=False, default=dict)       # {text, images[]}

    created_at = db.Column(db.DateTime, server_default=func.now(), index=True)
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    product = db.relationship("Product", lazy="joined")

    def set_options(self, selected_options, options_pricing):
        self.selected_options = dict(selected_options or {})
        self.options_key = options_key(self.selected_options)
        self.options_pricing = {k: float(v) for k, v in (options_pricing or {}).items()}

    # ---- price helpers ----
    def option_deltas(self) -> list[Decimal]:
        return [D(v) for v in (self.options_pricing or {}).values()]

    def unit_price_dec(self) -> Decimal:
        return round_money(D(self.price) + sum(self.option_deltas(), Decimal("0")))

    def line_total_dec(self) -> Decimal:
        return round_money(self.unit_price_dec() * Decimal(self.quantity))

    def as_api(self, with_product=True):
        out = {
            "id": self.id,
            "userId": self.user_id,
            "productId": self.product_id,
            "productName": self.product_name,
            "price": to_float(self.price),
            "image": self.image,
            "quantity": self.quantity,
            "selectedOptions": self.selected_options or {},
            "optionsPricing": self.options_pricing or {},
            "attachments": self.attachments or {},
            "unitPrice": to_float(self.unit_price_dec()),
            "totalPrice": to_float(self.line_total_dec()),
            "createdAt": iso(self.created_at),
        }
        if with_product:
            out["product"] = self.product.summary() if self.product else None
        return out
