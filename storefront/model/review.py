# storefront/model/review.py
from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import iso


class Review(db.Model):
    __tablename__ = "review"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = db.Column(db.String(64), nullable=False, index=True)
    customer_name = db.Column(db.String(180), nullable=False)
    rating = db.Column(db.Integer, nullable=True)
    comment = db.Column(db.String(2000), nullable=False)
    created_at = db.Column(db.DateTime, server_default=func.now(), index=True)

    def as_api(self):
        return {
            "id": self.id,
            "productId": self.product_id,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "rating": self.rating,
            "comment": self.comment,
            "createdAt": iso(self.created_at),
        }
