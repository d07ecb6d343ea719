import pytest
from bson import ObjectId

from eastlink.core.errors import Conflict, InsufficientStock
from eastlink.services import orders_service


def order_payload(*lines, city="Harar"):
    return {
        "items": [{"product_id": str(p["_id"]), "quantity": q} for p, q in lines],
        "delivery_address": {"street": "Jugol Road 4", "city": city},
    }


@pytest.fixture
def shop(make_user, make_product):
    seller = make_user("seller")
    return {
        "customer": make_user(),
        "seller": seller,
        "product": make_product(seller, price=100, stock=5),
    }


def test_place_order(client, db, shop, auth):
    response = client.post("/api/orders/", json=order_payload((shop["product"], 2)), headers=auth(shop["customer"]))
    assert response.status_code == 201
    order = response.json()["data"]
    assert order["order_number"].startswith("EL") and len(order["order_number"]) == 11
    assert order["total_amount"] == 200
    assert order["delivery_fee"] == 50
    assert order["final_amount"] == 250
    assert order["order_status"] == "pending"
    assert order["tracking_updates"][0]["status"] == "pending"
    assert order["items"][0]["product"]["name"] == shop["product"]["name"]
    assert order["customer"]["id"] == str(shop["customer"]["_id"])

    product = db.products.find_one({"_id": shop["product"]["_id"]})
    assert product["stock"] == 3
    assert product["sales_count"] == 2
    assert db.notifications.count_documents({"user": shop["seller"]["_id"], "type": "new_order"}) == 1


def test_delivery_fee_by_city(client, shop, auth):
    response = client.post("/api/orders/", json=order_payload((shop["product"], 1), city="Dire Dawa"),
                           headers=auth(shop["customer"]))
    assert response.json()["data"]["delivery_fee"] == 75


def test_order_needs_items(client, shop, auth):
    response = client.post("/api/orders/", json=order_payload(), headers=auth(shop["customer"]))
    assert response.status_code == 400


def test_only_customers_place_orders(client, shop, auth):
    response = client.post("/api/orders/", json=order_payload((shop["product"], 1)), headers=auth(shop["seller"]))
    assert response.status_code == 403


def test_oversell_rolls_back_everything(client, db, shop, make_product, auth):
    plenty = make_product(shop["seller"], name="Tea", stock=50)
    response = client.post(
        "/api/orders/", json=order_payload((plenty, 3), (shop["product"], 6)), headers=auth(shop["customer"])
    )
    assert response.status_code == 400
    assert "Insufficient stock" in response.json()["message"]
    assert db.products.find_one({"_id": plenty["_id"]})["stock"] == 50
    assert db.products.find_one({"_id": shop["product"]["_id"]})["stock"] == 5
    assert db.orders.count_documents({}) == 0


def test_reserve_stock_unknown_product_releases(db, shop):
    with pytest.raises(Exception):
        orders_service.reserve_stock(db, [
            {"product_id": shop["product"]["_id"], "quantity": 2},
            {"product_id": ObjectId(), "quantity": 1},
        ])
    assert db.products.find_one({"_id": shop["product"]["_id"]})["stock"] == 5


def test_reserve_stock_respects_order_limits(db, make_user, make_product):
    product = make_product(make_user("seller"), min_order_quantity=2, max_order_quantity=3)
    with pytest.raises(Exception, match="Minimum order quantity"):
        orders_service.reserve_stock(db, [{"product_id": product["_id"], "quantity": 1}])
    with pytest.raises(Exception, match="Maximum order quantity"):
        orders_service.reserve_stock(db, [{"product_id": product["_id"], "quantity": 4}])


def test_last_unit_goes_once(db, shop):
    orders_service.reserve_stock(db, [{"product_id": shop["product"]["_id"], "quantity": 5}])
    with pytest.raises(InsufficientStock):
        orders_service.reserve_stock(db, [{"product_id": shop["product"]["_id"], "quantity": 1}])


def test_checkout_cart(client, db, shop, auth):
    headers = auth(shop["customer"])
    client.post("/api/cart/add", json={"product_id": str(shop["product"]["_id"]), "quantity": 2}, headers=headers)
    response = client.post("/api/orders/checkout",
                           json={"delivery_address": {"street": "Jugol Road 4", "city": "Harar"}},
                           headers=headers)
    assert response.status_code == 201
    assert response.json()["data"]["total_amount"] == 200
    assert db.carts.find_one({"user": shop["customer"]["_id"]})["items"] == []


def test_checkout_empty_cart(client, shop, auth):
    response = client.post("/api/orders/checkout",
                           json={"delivery_address": {"street": "Jugol Road 4", "city": "Harar"}},
                           headers=auth(shop["customer"]))
    assert response.status_code == 400
    assert response.json()["message"] == "Cart is empty"


def test_seller_moves_order_forward(client, db, shop, make_order, auth):
    order = make_order(shop["customer"], shop["product"])
    response = client.put(f"/api/orders/{order['_id']}/status", json={"status": "accepted"},
                          headers=auth(shop["seller"]))
    assert response.status_code == 200
    assert response.json()["data"]["order_status"] == "accepted"
    notification = db.notifications.find_one({"user": shop["customer"]["_id"]})
    assert notification["type"] == "order_update"


def test_illegal_transition(client, db, shop, make_order, auth):
    order = make_order(shop["customer"], shop["product"])
    response = client.put(f"/api/orders/{order['_id']}/status", json={"status": "delivered"},
                          headers=auth(shop["seller"]))
    assert response.status_code == 400
    assert db.orders.find_one({"_id": order["_id"]})["order_status"] == "pending"


def test_other_seller_cannot_update(client, shop, make_user, make_order, auth):
    order = make_order(shop["customer"], shop["product"])
    response = client.put(f"/api/orders/{order['_id']}/status", json={"status": "accepted"},
                          headers=auth(make_user("seller")))
    assert response.status_code == 403


def test_unapproved_seller_blocked(client, shop, make_user, make_order, auth):
    order = make_order(shop["customer"], shop["product"])
    pending = make_user("seller", is_approved=False)
    response = client.put(f"/api/orders/{order['_id']}/status", json={"status": "accepted"},
                          headers=auth(pending))
    assert response.status_code == 403
    assert "pending approval" in response.json()["message"]


def test_reject_restocks(client, db, shop, auth):
    client.post("/api/orders/", json=order_payload((shop["product"], 2)), headers=auth(shop["customer"]))
    order = db.orders.find_one({})
    client.put(f"/api/orders/{order['_id']}/status", json={"status": "rejected"}, headers=auth(shop["seller"]))
    assert db.products.find_one({"_id": shop["product"]["_id"]})["stock"] == 5


def test_customer_cancel_restocks(client, db, shop, auth):
    headers = auth(shop["customer"])
    client.post("/api/orders/", json=order_payload((shop["product"], 3)), headers=headers)
    order = db.orders.find_one({})

    response = client.put(f"/api/orders/{order['_id']}/cancel", json={"reason": "Found it cheaper"}, headers=headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["order_status"] == "cancelled"
    assert data["cancellation_reason"] == "Found it cheaper"
    assert db.products.find_one({"_id": shop["product"]["_id"]})["stock"] == 5

    again = client.put(f"/api/orders/{order['_id']}/cancel", json={}, headers=headers)
    assert again.status_code == 400


def test_cancel_too_late(client, shop, make_order, auth):
    order = make_order(shop["customer"], shop["product"], order_status="dispatched")
    response = client.put(f"/api/orders/{order['_id']}/cancel", headers=auth(shop["customer"]))
    assert response.status_code == 400


def test_cancel_someone_elses_order(client, shop, make_user, make_order, auth):
    order = make_order(shop["customer"], shop["product"])
    response = client.put(f"/api/orders/{order['_id']}/cancel", headers=auth(make_user()))
    assert response.status_code == 403


def test_stale_write_conflicts(db, shop, make_order):
    order = make_order(shop["customer"], shop["product"])
    orders_service.transition(db, order, "accepted", shop["seller"])
    with pytest.raises(Conflict):
        orders_service.transition(db, order, "rejected", shop["seller"])
    assert db.orders.find_one({"_id": order["_id"]})["order_status"] == "accepted"


def test_order_visibility(client, shop, make_user, make_order, auth):
    order = make_order(shop["customer"], shop["product"])
    assert client.get(f"/api/orders/{order['_id']}", headers=auth(shop["customer"])).status_code == 200
    assert client.get(f"/api/orders/{order['_id']}", headers=auth(shop["seller"])).status_code == 200
    assert client.get(f"/api/orders/{order['_id']}", headers=auth(make_user())).status_code == 403
    assert client.get(f"/api/orders/{ObjectId()}", headers=auth(shop["customer"])).status_code == 404
    assert client.get("/api/orders/not-an-id", headers=auth(shop["customer"])).status_code == 400


def test_my_orders_and_seller_orders(client, shop, make_user, make_order, auth):
    make_order(shop["customer"], shop["product"])
    make_order(shop["customer"], shop["product"], order_status="accepted")
    make_order(make_user(), shop["product"])

    mine = client.get("/api/orders/my-orders", headers=auth(shop["customer"])).json()["data"]
    assert mine["total"] == 2
    filtered = client.get("/api/orders/my-orders?status=accepted", headers=auth(shop["customer"])).json()["data"]
    assert filtered["total"] == 1

    sold = client.get("/api/orders/seller/orders", headers=auth(shop["seller"])).json()["data"]
    assert sold["total"] == 3
    assert sold["orders"][0]["customer"]["first_name"] == "Test"


def test_tracking_is_public(client, shop, make_order):
    order = make_order(shop["customer"], shop["product"], order_status="accepted")
    data = client.get(f"/api/orders/{order['_id']}/tracking").json()["data"]
    assert data["current_status"] == "accepted"
    assert data["order_number"] == order["order_number"]


def test_status_table_endpoint(client):
    data = client.get("/api/orders/statuses").json()["data"]
    assert "ready_for_pickup" in data["statuses"]


def test_populate_single_order(db, shop, make_order):
    order = make_order(shop["customer"], shop["product"])
    populated = orders_service.populate_order(db, order)
    assert len(populated) == 1
    assert populated[0]["items"][0]["seller"]["business_name"] == shop["seller"]["business_name"]
    assert populated[0]["customer"]["_id"] == shop["customer"]["_id"]
