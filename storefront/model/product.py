# storefront/model/product.py
from decimal import Decimal

from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import iso
from ..utils.money import D, round_money, to_float
from .options import OptionSchema, ProductType, default_schema


class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    description = db.Column(db.String(2000), nullable=False, default="")

    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    original_price = db.Column(db.Numeric(12, 2), nullable=True)
    stock = db.Column(db.Integer, nullable=False, default=0, index=True)

    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=False, index=True)

    product_type = db.Column(db.String(32), nullable=False, default=ProductType.SASH_AND_CAP.value, index=True)
    dynamic_options = db.Column(db.JSON, nullable=False, default=list)

    main_image = db.Column(db.Text, nullable=False, default="")
    detailed_images = db.Column(db.JSON, nullable=False, default=list)
    specifications = db.Column(db.JSON, nullable=False, default=list)   # [{name, value}]
    tags = db.Column(db.JSON, nullable=False, default=list)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    featured = db.Column(db.Boolean, nullable=False, default=False, index=True)
    seo_title = db.Column(db.String(60))
    seo_description = db.Column(db.String(160))

    created_at = db.Column(db.DateTime, server_default=func.now(), index=True)
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    # ---- option schema ----
    @property
    def option_schema(self) -> OptionSchema:
        if not self.dynamic_options:
            return default_schema(self.product_type)
        return OptionSchema.from_api(self.product_type, self.dynamic_options)

    @option_schema.setter
    def option_schema(self, schema: OptionSchema):
        self.product_type = schema.product_type.value
        self.dynamic_options = schema.as_api()

    def calculated_price(self, selected_options=None) -> Decimal:
        deltas = self.option_schema.price_deltas(selected_options)
        return round_money(D(self.price) + sum(deltas.values(), Decimal("0")))

    def in_stock(self, quantity=1) -> bool:
        return int(self.stock or 0) >= quantity

    def fill_seo(self):
        if not self.seo_title and self.name:
            self.seo_title = self.name[:60]
        if not self.seo_description and self.description:
            self.seo_description = self.description[:160]

    def summary(self):
        """The subset embedded in cart and wishlist payloads."""
        return {
            "id": self.id,
            "name": self.name,
            "price": to_float(self.price),
            "originalPrice": to_float(self.original_price) if self.original_price is not None else None,
            "mainImage": self.main_image,
            "stock": self.stock,
            "productType": self.product_type,
            "dynamicOptions": self.option_schema.as_api(),
            "isActive": self.is_active,
        }

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": to_float(self.price),
            "originalPrice": to_float(self.original_price) if self.original_price is not None else None,
            "stock": self.stock,
            "categoryId": self.category_id,
            "category": {"id": self.category.id, "name": self.category.name} if self.category else None,
            "productType": self.product_type,
            "dynamicOptions": self.option_schema.as_api(),
            "mainImage": self.main_image,
            "detailedImages": self.detailed_images or [],
            "specifications": self.specifications or [],
            "tags": self.tags or [],
            "isActive": self.is_active,
            "featured": self.featured,
            "seoTitle": self.seo_title,
            "seoDescription": self.seo_description,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
