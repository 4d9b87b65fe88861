from decimal import Decimal

import pytest

from storefront import create_app
from storefront.config import TestingConfig
from storefront.extensions import db
from storefront.model import Category, Coupon, Customer, OptionSchema, Product

IMAGE = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="

JACKET_OPTIONS = [
    {
        "optionName": "size",
        "optionType": "select",
        "required": True,
        "options": [
            {"value": "M", "price": 0},
            {"value": "L", "price": 0},
            {"value": "XL", "price": 5},
        ],
    },
    {
        "optionName": "embroidery",
        "optionType": "text",
        "required": False,
        "validation": {"maxLength": 20},
    },
]


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def _make_customer(app, email, password="secret123", role="customer", name="Test User"):
    with app.app_context():
        c = Customer(email=email, name=name, role=role, status="active")
        c.set_password(password)
        db.session.add(c)
        db.session.commit()
        return c.id


def _login(client, email, password="secret123"):
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.get_json()
    return r.get_json()["data"]["token"]


@pytest.fixture
def admin_token(app, client):
    _make_customer(app, "admin@example.com", role="admin", name="Admin")
    return _login(client, "admin@example.com")


@pytest.fixture
def customer(app, client):
    """``(id, token)`` of a logged-in regular customer."""
    cid = _make_customer(app, "jane@example.com", name="Jane Doe")
    return str(cid), _login(client, "jane@example.com")


@pytest.fixture
def other_customer(app, client):
    cid = _make_customer(app, "bob@example.com", name="Bob")
    return str(cid), _login(client, "bob@example.com")


@pytest.fixture
def category_id(app):
    with app.app_context():
        c = Category(name="Graduation", description="Graduation wear", image=IMAGE)
        c.fill_seo()
        db.session.add(c)
        db.session.commit()
        return c.id


@pytest.fixture
def make_product(app, category_id):
    def _make(name="Varsity Jacket", price="100.00", stock=50, product_type="jacket", options=None, **extra):
        with app.app_context():
            p = Product(
                name=name,
                description=f"{name} description",
                price=Decimal(price),
                stock=stock,
                category_id=category_id,
                main_image=IMAGE,
                **extra,
            )
            p.option_schema = OptionSchema.from_api(product_type, options)
            db.session.add(p)
            db.session.commit()
            return p.id
    return _make


@pytest.fixture
def product_id(make_product):
    return make_product(options=JACKET_OPTIONS)


@pytest.fixture
def make_coupon(app):
    def _make(code="SAVE10", discount_type="percentage", value="10", **extra):
        with app.app_context():
            c = Coupon(code=code, discount_type=discount_type, discount_value=Decimal(value), **extra)
            db.session.add(c)
            db.session.commit()
            return c.id
    return _make


def fetch(app, model, pk):
    """Load a fresh copy of a row outside of any request."""
    with app.app_context():
        obj = db.session.get(model, pk)
        if obj is not None:
            db.session.expunge(obj)
        return obj
