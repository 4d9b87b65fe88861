# --- storefront/model/category.py ---
from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import iso


class Category(db.Model):
    __tablename__ = "category"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    description = db.Column(db.String(500), nullable=False, default="")
    image = db.Column(db.Text, nullable=False, default="")       # base64 data URL
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=True, index=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0, index=True)
    seo_title = db.Column(db.String(60))
    seo_description = db.Column(db.String(160))

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    parent = db.relationship("Category", remote_side=[id], backref="children")
    products = db.relationship("Product", backref="category", lazy=True)

    def fill_seo(self):
        if not self.seo_title and self.name:
            self.seo_title = self.name[:60]
        if not self.seo_description and self.description:
            self.seo_description = self.description[:160]

    def as_dict(self, with_children=False):
        out = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "isActive": self.is_active,
            "parentId": self.parent_id,
            "order": self.sort_order,
            "seoTitle": self.seo_title,
            "seoDescription": self.seo_description,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if with_children:
            out["subcategories"] = [
                c.as_dict() for c in sorted(self.children, key=lambda c: (c.sort_order, c.name)) if c.is_active
            ]
        return out
