# storefront/model/wishlist.py
from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import iso
from ..utils.money import to_float
from .cart import GUEST


class WishlistItem(db.Model):
    __tablename__ = "wishlist_item"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_wishlist_line"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, default=GUEST, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    product_name = db.Column(db.String(200), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    image = db.Column(db.Text, nullable=False, default="")
    created_at = db.Column(db.DateTime, server_default=func.now(), index=True)

    def as_api(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "productId": self.product_id,
            "productName": self.product_name,
            "price": to_float(self.price),
            "image": self.image,
            "createdAt": iso(self.created_at),
        }
