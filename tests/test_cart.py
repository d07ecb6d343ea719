from bson import ObjectId

from eastlink.services.cart_service import compute_totals


def test_compute_totals():
    items = [{"price": 10.5, "quantity": 2}, {"price": 3.333, "quantity": 3}]
    assert compute_totals(items) == {"total_items": 5, "total_amount": 31.0}
    assert compute_totals([]) == {"total_items": 0, "total_amount": 0}


def test_empty_cart(client, make_user, auth):
    response = client.get("/api/cart/", headers=auth(make_user()))
    assert response.status_code == 200
    assert response.json()["data"]["items"] == []
    assert response.json()["data"]["total_amount"] == 0


def test_add_merges_lines(client, make_user, make_product, auth):
    user, seller = make_user(), make_user("seller")
    product = make_product(seller, price=40)
    headers = auth(user)

    client.post("/api/cart/add", json={"product_id": str(product["_id"]), "quantity": 2}, headers=headers)
    response = client.post("/api/cart/add", json={"product_id": str(product["_id"])}, headers=headers)

    cart = response.json()["data"]
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3
    assert cart["total_items"] == 3
    assert cart["total_amount"] == 120


def test_add_refreshes_price(client, db, make_user, make_product, auth):
    user, seller = make_user(), make_user("seller")
    product = make_product(seller, price=40)
    headers = auth(user)
    client.post("/api/cart/add", json={"product_id": str(product["_id"])}, headers=headers)

    db.products.update_one({"_id": product["_id"]}, {"$set": {"price": 55}})
    cart = client.post("/api/cart/add", json={"product_id": str(product["_id"])}, headers=headers).json()["data"]
    assert cart["items"][0]["price"] == 55
    assert cart["total_amount"] == 110


def test_add_unknown_product(client, make_user, auth):
    response = client.post("/api/cart/add", json={"product_id": str(ObjectId())}, headers=auth(make_user()))
    assert response.status_code == 404


def test_add_inactive_product(client, make_user, make_product, auth):
    product = make_product(make_user("seller"), is_active=False)
    response = client.post("/api/cart/add", json={"product_id": str(product["_id"])}, headers=auth(make_user()))
    assert response.status_code == 400


def test_add_rejects_bad_id(client, make_user, auth):
    response = client.post("/api/cart/add", json={"product_id": "nope"}, headers=auth(make_user()))
    assert response.status_code == 400
    assert response.json()["message"] == "Validation failed"


def test_update_to_zero_removes_line(client, make_user, make_product, auth):
    user, seller = make_user(), make_user("seller")
    first, second = make_product(seller, price=10), make_product(seller, name="Tea", price=5)
    headers = auth(user)
    for product in (first, second):
        client.post("/api/cart/add", json={"product_id": str(product["_id"])}, headers=headers)

    response = client.put(f"/api/cart/{first['_id']}", json={"quantity": 0}, headers=headers)
    cart = response.json()["data"]
    assert [item["product"] for item in cart["items"]] == [str(second["_id"])]
    assert cart["total_amount"] == 5


def test_update_missing_item(client, make_user, auth):
    response = client.put(f"/api/cart/{ObjectId()}", json={"quantity": 2}, headers=auth(make_user()))
    assert response.status_code == 404


def test_remove_and_clear(client, make_user, make_product, auth):
    user, seller = make_user(), make_user("seller")
    product = make_product(seller)
    headers = auth(user)
    client.post("/api/cart/add", json={"product_id": str(product["_id"]), "quantity": 4}, headers=headers)

    removed = client.delete(f"/api/cart/{product['_id']}", headers=headers).json()["data"]
    assert removed["items"] == [] and removed["total_items"] == 0

    client.post("/api/cart/add", json={"product_id": str(product["_id"])}, headers=headers)
    cleared = client.delete("/api/cart/", headers=headers).json()["data"]
    assert cleared["items"] == []
