# --- storefront/__init__.py ---
import logging
from datetime import datetime

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db, jwt, cors, migrate
from .config import Config

log = logging.getLogger(__name__)


def _configure_logging(level):
    logger = logging.getLogger("storefront")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)


def create_app(config_object=None, **overrides):
    app = Flask(__name__, instance_relative_config=True)

    config_object = config_object or Config
    app.config.from_object(config_object)
    app.config.update(overrides)
    config_object.init_app(app)

    _configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})
    migrate.init_app(app, db)

    from .errors import register_error_handlers, register_jwt_handlers
    register_error_handlers(app)
    register_jwt_handlers(jwt)

    # Register blueprints
    from .auth import bp as auth_bp; app.register_blueprint(auth_bp)
    from .category import bp as category_bp; app.register_blueprint(category_bp)
    from .product import bp as product_bp; app.register_blueprint(product_bp)
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .wishlist import bp as wishlist_bp; app.register_blueprint(wishlist_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .customer import bp as customer_bp; app.register_blueprint(customer_bp)
    from .review import bp as review_bp; app.register_blueprint(review_bp)

    from .cli import register_cli
    register_cli(app)

    @app.get("/api/health")
    def health():
        from .model import Category, Product, Coupon, CartItem, WishlistItem, Customer, Order, Review
        try:
            payload = {
                "status": "healthy",
                "categories": Category.query.filter_by(is_active=True).count(),
                "products": Product.query.filter_by(is_active=True).count(),
                "coupons": Coupon.query.filter_by(is_active=True).count(),
                "cartItems": CartItem.query.count(),
                "wishlistItems": WishlistItem.query.count(),
                "customers": Customer.query.filter_by(status="active").count(),
                "orders": Order.query.count(),
                "pendingOrders": Order.query.filter_by(status="pending").count(),
                "reviews": Review.query.count(),
                "timestamp": datetime.utcnow().isoformat(),
            }
        except SQLAlchemyError as e:
            log.exception("health check failed")
            return jsonify(status="unhealthy", error=str(e.__class__.__name__)), 500
        return jsonify(payload)

    with app.app_context():
        from . import model  # noqa: F401  register tables
        db.create_all()

    log.debug("blueprints: %s", sorted(app.blueprints.keys()))
    return app
