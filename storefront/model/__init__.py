# ------ storefront/model/__init__.py ------

from .category import Category
from .product import Product
from .options import ProductType, OptionKind, OptionChoice, OptionField, OptionSchema, default_schema
from .customer import Customer, RefreshToken
from .cart import CartItem, GUEST, options_key
from .wishlist import WishlistItem
from .coupon import Coupon, DiscountType
from .order import Order, OrderItem, OrderStatus, InvalidTransition
from .review import Review

__all__ = [
    "Category",
    "Product",
    "ProductType",
    "OptionKind",
    "OptionChoice",
    "OptionField",
    "OptionSchema",
    "default_schema",
    "Customer",
    "RefreshToken",
    "CartItem",
    "GUEST",
    "options_key",
    "WishlistItem",
    "Coupon",
    "DiscountType",
    "Order",
    "OrderItem",
    "OrderStatus",
    "InvalidTransition",
    "Review",
]
