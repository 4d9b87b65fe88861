from decimal import Decimal

from storefront.model import CartItem, Coupon, WishlistItem

from conftest import auth, fetch


def test_coupon_crud(app, client, admin_token):
    h = auth(admin_token)
    r = client.post("/api/coupons", json={
        "code": "spring25", "discountType": "percentage", "discountValue": 25,
        "minOrderAmount": 20, "maxUsage": 10, "expiresAt": "2099-01-01T00:00:00Z",
    }, headers=h)
    assert r.status_code == 201, r.get_json()
    c = r.get_json()["data"]
    assert c["code"] == "SPRING25"
    assert c["usedCount"] == 0
    assert c["expiresAt"].startswith("2099-01-01")

    assert client.post("/api/coupons", json={"code": "Spring25", "discountValue": 5}, headers=h).status_code == 409

    r = client.put(f"/api/coupons/{c['id']}", json={"isActive": False}, headers=h)
    assert r.get_json()["data"]["isActive"] is False
    assert len(client.get("/api/coupons", headers=h).get_json()["data"]["items"]) == 1

    assert client.delete(f"/api/coupons/{c['id']}", headers=h).status_code == 200
    assert fetch(app, Coupon, c["id"]) is None


def test_coupon_payload_validation(client, admin_token):
    h = auth(admin_token)
    for body in (
        {"discountValue": 5},
        {"code": "X", "discountValue": 0},
        {"code": "X", "discountValue": 5, "discountType": "bogo"},
        {"code": "X", "discountValue": 5, "maxUsage": 0},
        {"code": "X", "discountValue": 5, "expiresAt": "tomorrow"},
    ):
        assert client.post("/api/coupons", json=body, headers=h).status_code == 400, body


def test_coupon_admin_requires_role(client, customer):
    _, token = customer
    assert client.get("/api/coupons", headers=auth(token)).status_code == 403


def test_validate_endpoint_messages(client, make_coupon):
    make_coupon("MIN50", "fixed", "30", min_order_amount=Decimal("50"))
    r = client.post("/api/coupons/validate", json={"code": "MIN50", "totalAmount": 40})
    assert r.status_code == 400
    assert r.get_json()["message"] == "order below minimum amount for coupon eligibility"

    r = client.post("/api/coupons/validate", json={"code": "MIN50", "totalAmount": 100})
    assert r.get_json()["data"]["discountAmount"] == 30.0
    assert r.get_json()["data"]["finalAmount"] == 70.0

    assert client.post("/api/coupons/validate", json={"code": "NOPE", "totalAmount": 1}).status_code == 404
    assert client.post("/api/coupons/validate", json={"totalAmount": 1}).status_code == 400
    r = client.post("/api/coupons/validate", json={"code": 5, "totalAmount": 1})
    assert r.status_code == 400
    assert r.get_json()["message"] == "coupon code must be a string"


def test_customer_admin(app, client, admin_token, customer, product_id):
    uid, token = customer
    h = auth(admin_token)
    client.post("/api/cart", json={"productId": product_id, "selectedOptions": {"size": "M"}}, headers=auth(token))
    client.post("/api/wishlist", json={"productId": product_id}, headers=auth(token))

    listing = client.get("/api/customers", headers=h).get_json()["data"]["items"]
    jane = next(c for c in listing if str(c["id"]) == uid)
    assert jane["cartItemsCount"] == 1
    assert jane["wishlistItemsCount"] == 1

    stats = client.get("/api/customers/stats", headers=h).get_json()["data"]
    assert stats["totalCustomers"] == 2
    assert stats["activeCustomers"] == 2

    r = client.post("/api/customers", json={"email": "jane@example.com", "name": "Dup"}, headers=h)
    assert r.status_code == 409
    r = client.post("/api/customers", json={"email": "walkin@example.com", "name": "Walk In"}, headers=h)
    assert r.status_code == 201

    assert client.delete(f"/api/customers/{uid}", headers=h).status_code == 200
    with app.app_context():
        assert CartItem.query.filter_by(user_id=uid).count() == 0
        assert WishlistItem.query.filter_by(user_id=uid).count() == 0
    assert client.get("/api/auth/me", headers=auth(token)).status_code == 404


def test_customer_admin_requires_role(client, customer):
    _, token = customer
    assert client.get("/api/customers", headers=auth(token)).status_code == 403
