from decimal import Decimal

import pytest

from storefront.errors import CouponRejected
from storefront.extensions import db
from storefront.model import CartItem, Coupon, Customer, Order, Product
from storefront.services.coupon_service import redeem_coupon

from conftest import auth, fetch

CUSTOMER = {"name": "Jane Doe", "email": "Jane@Example.com", "phone": "012345678", "address": "1 Main St", "city": "Phnom Penh"}


def fill_cart(client, product_id, headers=None, qty=1, size="M"):
    r = client.post(
        "/api/cart",
        json={"productId": product_id, "quantity": qty, "selectedOptions": {"size": size}},
        headers=headers or {},
    )
    assert r.status_code in (200, 201), r.get_json()


def checkout(client, headers=None, **body):
    body.setdefault("customer", CUSTOMER)
    return client.post("/api/checkout", json=body, headers=headers or {})


def test_guest_checkout_snapshot(app, client, product_id):
    fill_cart(client, product_id, qty=2, size="XL")
    r = checkout(client, deliveryFee=5)
    assert r.status_code == 201, r.get_json()
    order = r.get_json()["data"]

    assert order["status"] == "pending"
    assert order["isGuestOrder"] is True
    assert order["code"].startswith("ORD-") and order["code"].endswith(f"-{order['id']:04d}")
    assert order["subtotal"] == 210.0
    assert order["deliveryFee"] == 5.0
    assert order["total"] == 215.0
    assert order["customer"]["email"] == "jane@example.com"
    assert order["paymentMethod"] == "cod"

    (item,) = order["items"]
    assert item["productName"] == "Varsity Jacket"
    assert item["price"] == 100.0
    assert item["optionsPricing"] == {"size": 5.0}
    assert item["totalPrice"] == 210.0

    assert client.get("/api/cart").get_json()["data"]["items"] == []
    assert fetch(app, Product, product_id).stock == 48


def test_client_totals_are_ignored(client, product_id):
    fill_cart(client, product_id)
    r = checkout(client, subtotal=1, total=1, couponDiscount=99, deliveryFee=0)
    assert r.get_json()["data"]["total"] == 100.0


def test_default_delivery_fee_from_config(app, client, product_id):
    app.config["DEFAULT_DELIVERY_FEE"] = "3.50"
    fill_cart(client, product_id)
    assert checkout(client).get_json()["data"]["total"] == 103.5


def test_empty_cart_rejected(client):
    r = checkout(client)
    assert r.status_code == 400
    assert r.get_json()["message"] == "cart is empty"


def test_customer_name_required(client, product_id):
    fill_cart(client, product_id)
    r = checkout(client, customer={"email": "x@example.com"})
    assert r.status_code == 400
    assert len(client.get("/api/cart").get_json()["data"]["items"]) == 1


def test_coupon_usage_counted_once(app, client, product_id, make_coupon):
    coupon_id = make_coupon("FIX30", "fixed", "30", min_order_amount=Decimal("50"), max_usage=5)
    fill_cart(client, product_id)
    order = checkout(client, couponCode="fix30", deliveryFee=0).get_json()["data"]

    assert order["couponCode"] == "FIX30"
    assert order["couponDiscount"] == 30.0
    assert order["total"] == 70.0
    assert fetch(app, Coupon, coupon_id).used_count == 1


def test_validation_does_not_consume_coupon(app, client, make_coupon):
    coupon_id = make_coupon("SAVE10", max_usage=1)
    for _ in range(3):
        r = client.post("/api/coupons/validate", json={"code": "save10", "totalAmount": 200})
        assert r.status_code == 200
        assert r.get_json()["data"]["discountAmount"] == 20.0
    assert fetch(app, Coupon, coupon_id).used_count == 0


def test_coupon_cap_is_enforced(app, client, product_id, make_coupon):
    coupon_id = make_coupon("ONCE", "fixed", "10", max_usage=1)

    fill_cart(client, product_id)
    assert checkout(client, couponCode="ONCE").status_code == 201

    fill_cart(client, product_id)
    r = checkout(client, couponCode="ONCE")
    assert r.status_code == 400
    assert r.get_json()["message"] == "usage limit reached"
    assert r.get_json()["data"]["reason"] == "usage_limit"

    assert fetch(app, Coupon, coupon_id).used_count == 1
    with app.app_context():
        assert Order.query.count() == 1
        assert CartItem.query.filter_by(user_id="guest").count() == 1


def test_rejected_coupon_reasons_surface(client, product_id, make_coupon):
    make_coupon("OFF", is_active=False)
    fill_cart(client, product_id)
    r = checkout(client, couponCode="OFF")
    assert r.status_code == 400
    assert r.get_json()["message"] == "coupon inactive"

    r = checkout(client, couponCode="MISSING")
    assert r.status_code == 404


def test_redeem_is_conditional_on_the_cap(app, make_coupon):
    coupon_id = make_coupon("RACE", max_usage=1)
    with app.app_context():
        c = db.session.get(Coupon, coupon_id)
        redeem_coupon(c)
        db.session.commit()
        with pytest.raises(CouponRejected):
            redeem_coupon(c)
        db.session.rollback()
    assert fetch(app, Coupon, coupon_id).used_count == 1


def test_insufficient_stock_rolls_back(app, client, make_product, make_coupon):
    pid = make_product(stock=1, options=[])
    coupon_id = make_coupon("SAVE10")
    fill_cart(client, pid, qty=2)
    r = checkout(client, couponCode="SAVE10")
    assert r.status_code == 409
    assert fetch(app, Product, pid).stock == 1
    assert fetch(app, Coupon, coupon_id).used_count == 0
    with app.app_context():
        assert Order.query.count() == 0


def test_order_snapshot_is_immutable(app, client, product_id):
    fill_cart(client, product_id)
    order_id = checkout(client, deliveryFee=0).get_json()["data"]["id"]

    with app.app_context():
        p = db.session.get(Product, product_id)
        p.price = Decimal("999")
        p.name = "Renamed"
        db.session.commit()

    order = fetch(app, Order, order_id)
    assert order.total == Decimal("100.00")
    assert order.items[0].product_name == "Varsity Jacket"
    assert order.items[0].price == Decimal("100.00")


def test_logged_in_checkout_updates_customer_stats(app, client, product_id, customer):
    uid, token = customer
    fill_cart(client, product_id, headers=auth(token), qty=2)
    r = checkout(client, headers=auth(token), customer={}, deliveryFee=0)
    assert r.status_code == 201, r.get_json()
    order = r.get_json()["data"]
    assert order["userId"] == uid
    assert order["isGuestOrder"] is False
    assert order["customer"]["name"] == "Jane Doe"

    c = fetch(app, Customer, int(uid))
    assert c.total_orders == 1
    assert c.total_spent == Decimal("200.00")
    assert c.last_order_date is not None

    mine = client.get("/api/orders/mine", headers=auth(token)).get_json()["data"]["items"]
    assert [o["id"] for o in mine] == [order["id"]]


def test_direct_order_prices_from_catalog(app, client, product_id):
    r = client.post("/api/orders", json={
        "customer": CUSTOMER,
        "deliveryFee": 0,
        "items": [{"productId": product_id, "quantity": 3, "selectedOptions": {"size": "XL"}, "price": 1}],
    })
    assert r.status_code == 201, r.get_json()
    order = r.get_json()["data"]
    assert order["subtotal"] == 315.0
    assert order["items"][0]["price"] == 100.0


def test_direct_order_validates_items(client, product_id):
    r = client.post("/api/orders", json={"customer": CUSTOMER, "items": []})
    assert r.status_code == 400
    r = client.post("/api/orders", json={"customer": CUSTOMER, "items": [{"productId": product_id, "quantity": 1}]})
    assert r.status_code == 400


def test_preview_totals(client, product_id, make_coupon):
    make_coupon("HUGE", value="150")
    fill_cart(client, product_id)
    totals = client.post("/api/orders/preview", json={"couponCode": "HUGE", "deliveryFee": 4}).get_json()["data"]
    assert totals == {"subtotal": 100.0, "deliveryFee": 4.0, "couponDiscount": 100.0, "couponCode": "HUGE", "total": 4.0}


@pytest.mark.parametrize("body, message", [
    ({"couponCode": 123}, "coupon code must be a string"),
    ({"customer": "Jane"}, "customer must be an object"),
    ({"payment": "card"}, "payment must be an object"),
    ({"customer": {**CUSTOMER, "email": ["a@example.com"]}}, "email must be a string"),
])
def test_malformed_checkout_fields(client, product_id, body, message):
    fill_cart(client, product_id)
    r = checkout(client, **body)
    assert r.status_code == 400
    assert r.get_json()["message"] == message
    assert len(client.get("/api/cart").get_json()["data"]["items"]) == 1


def test_deactivated_product_cannot_be_checked_out(app, client, product_id):
    fill_cart(client, product_id, qty=2)
    with app.app_context():
        db.session.get(Product, product_id).is_active = False
        db.session.commit()
    r = checkout(client)
    assert r.status_code == 400
    assert r.get_json()["message"] == "Varsity Jacket is no longer available"
    assert fetch(app, Product, product_id).stock == 50
    assert len(client.get("/api/cart").get_json()["data"]["items"]) == 1
