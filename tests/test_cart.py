from decimal import Decimal

from storefront.extensions import db
from storefront.model import CartItem, Product

from conftest import IMAGE, auth


def add(client, product_id, qty=1, options=None, headers=None, **extra):
    body = {"productId": product_id, "quantity": qty, "selectedOptions": options or {}, **extra}
    return client.post("/api/cart", json=body, headers=headers or {})


def test_guest_add_and_list(client, product_id):
    r = add(client, product_id, 2, {"size": "M"})
    assert r.status_code == 201
    line = r.get_json()["data"]
    assert line["userId"] == "guest"
    assert line["quantity"] == 2
    assert line["price"] == 100.0

    cart = client.get("/api/cart").get_json()["data"]
    assert len(cart["items"]) == 1
    assert cart["itemsCount"] == 2
    assert cart["subtotal"] == 200.0


def test_same_options_merge_into_one_line(client, product_id):
    add(client, product_id, 1, {"size": "M", "embroidery": "ANNA"})
    r = add(client, product_id, 2, {"embroidery": "ANNA", "size": "M"})
    assert r.status_code == 200
    assert r.get_json()["data"]["quantity"] == 3
    assert len(client.get("/api/cart").get_json()["data"]["items"]) == 1


def test_different_options_make_distinct_lines(client, product_id):
    add(client, product_id, 1, {"size": "M"})
    add(client, product_id, 1, {"size": "L"})
    items = client.get("/api/cart").get_json()["data"]["items"]
    assert sorted(i["selectedOptions"]["size"] for i in items) == ["L", "M"]


def test_option_price_delta_is_captured(client, product_id):
    line = add(client, product_id, 2, {"size": "XL"}).get_json()["data"]
    assert line["optionsPricing"] == {"size": 5.0}
    assert line["unitPrice"] == 105.0
    assert line["totalPrice"] == 210.0


def test_invalid_options_rejected(client, product_id):
    r = add(client, product_id, 1, {"size": "XXXL"})
    assert r.status_code == 400
    assert r.get_json()["data"]["errors"]

    r = add(client, product_id, 1, {})
    assert r.status_code == 400


def test_quantity_and_product_validation(client, product_id):
    assert add(client, product_id, 0, {"size": "M"}).status_code == 400
    assert add(client, product_id, "two", {"size": "M"}).status_code == 400
    assert add(client, 9999, 1, {"size": "M"}).status_code == 404


def test_attachments_replaced_only_when_non_empty(client, product_id):
    opts = {"size": "M"}
    add(client, product_id, 1, opts, attachments={"text": "first", "images": [IMAGE]})
    line = add(client, product_id, 1, opts).get_json()["data"]
    assert line["attachments"]["text"] == "first"

    line = add(client, product_id, 1, opts, attachments={"text": "second"}).get_json()["data"]
    assert line["attachments"] == {"text": "second"}
    assert line["quantity"] == 3


def test_attachment_images_must_be_data_urls(client, product_id):
    r = add(client, product_id, 1, {"size": "M"}, attachments={"images": ["http://example.com/a.png"]})
    assert r.status_code == 400


def test_snapshot_price_survives_catalog_change(app, client, product_id):
    add(client, product_id, 1, {"size": "M"})
    with app.app_context():
        db.session.get(Product, product_id).price = Decimal("250")
        db.session.commit()
    line = client.get("/api/cart").get_json()["data"]["items"][0]
    assert line["price"] == 100.0
    assert line["product"]["price"] == 250.0


def test_update_quantity_and_remove(client, product_id):
    line_id = add(client, product_id, 1, {"size": "M"}).get_json()["data"]["id"]

    r = client.put(f"/api/cart/{line_id}", json={"quantity": 4})
    assert r.get_json()["data"]["quantity"] == 4

    assert client.delete(f"/api/cart/{line_id}").status_code == 200
    assert client.delete(f"/api/cart/{line_id}").status_code == 404


def test_changing_options_folds_into_matching_line(client, product_id):
    add(client, product_id, 1, {"size": "M"})
    other = add(client, product_id, 2, {"size": "L"}).get_json()["data"]["id"]

    r = client.put(f"/api/cart/{other}", json={"selectedOptions": {"size": "M"}})
    assert r.get_json()["data"]["quantity"] == 3
    assert len(client.get("/api/cart").get_json()["data"]["items"]) == 1


def test_remove_product_and_clear(client, product_id, make_product):
    second = make_product(name="Cap", options=[])
    add(client, product_id, 1, {"size": "M"})
    add(client, product_id, 1, {"size": "L"})

    r = client.delete(f"/api/cart/product/{product_id}")
    assert r.get_json()["data"]["removedCount"] == 2
    assert client.delete(f"/api/cart/product/{product_id}").status_code == 404

    add(client, second, 1, {"size": "M"})
    assert client.delete("/api/cart").get_json()["data"]["removedCount"] == 1
    assert client.get("/api/cart").get_json()["data"]["items"] == []


def test_user_carts_are_private(client, product_id, customer, other_customer):
    uid, token = customer
    other_uid, _ = other_customer

    r = add(client, product_id, 1, {"size": "M"}, headers=auth(token))
    assert r.get_json()["data"]["userId"] == uid

    assert client.get(f"/api/cart?userId={other_uid}", headers=auth(token)).status_code == 403
    assert client.get(f"/api/cart?userId={uid}").status_code == 401
    assert client.get("/api/cart").get_json()["data"]["items"] == []


def test_admin_may_read_any_cart(client, product_id, customer, admin_token):
    uid, token = customer
    add(client, product_id, 1, {"size": "M"}, headers=auth(token))
    r = client.get(f"/api/cart?userId={uid}", headers=auth(admin_token))
    assert len(r.get_json()["data"]["items"]) == 1


def test_migrate_guest_cart(app, client, product_id, customer):
    uid, token = customer
    add(client, product_id, 2, {"size": "M"}, headers=auth(token), attachments={"text": "old"})
    add(client, product_id, 3, {"size": "M"}, attachments={"text": "new"})
    add(client, product_id, 1, {"size": "L"})

    r = client.post("/api/migrate-cart", headers=auth(token))
    assert r.status_code == 200
    assert r.get_json()["data"] == {"migratedCount": 1, "mergedCount": 1, "totalProcessed": 2}

    items = client.get("/api/cart", headers=auth(token)).get_json()["data"]["items"]
    by_size = {i["selectedOptions"]["size"]: i for i in items}
    assert by_size["M"]["quantity"] == 5
    assert by_size["M"]["attachments"] == {"text": "new"}
    assert by_size["L"]["quantity"] == 1

    with app.app_context():
        assert CartItem.query.filter_by(user_id="guest").count() == 0


def test_migrate_requires_login(client):
    assert client.post("/api/migrate-cart").status_code == 401


def test_concurrent_identical_add_merges(app, product_id, monkeypatch):
    from storefront.services import cart_service

    with app.app_context():
        product = db.session.get(Product, product_id)
        cart_service.add_line("guest", product, 1, {"size": "M"})

        real_find = cart_service.find_line
        calls = []

        def stale_find(*args):
            calls.append(args)
            # the first lookup misses the row another request already wrote
            return None if len(calls) == 1 else real_find(*args)

        monkeypatch.setattr(cart_service, "find_line", stale_find)
        item, created = cart_service.add_line("guest", db.session.get(Product, product_id), 2, {"size": "M"})

        assert created is False
        assert item.quantity == 3
        assert CartItem.query.filter_by(user_id="guest").count() == 1
