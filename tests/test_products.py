from eastlink.services.products_service import recompute_rating


def product_payload(**overrides):
    payload = {
        "name": "Handwoven Basket",
        "description": "Traditional Harari basket, woven by hand",
        "price": 350,
        "category": "crafts_hobbies",
        "stock": 12,
        "tags": "basket, handmade",
        "images": ["http://img/a.jpg", "http://img/b.jpg"],
    }
    payload.update(overrides)
    return payload


def test_create_product(client, make_user, auth):
    seller = make_user("seller")
    response = client.post("/api/products/", json=product_payload(), headers=auth(seller))
    assert response.status_code == 201
    product = response.json()["data"]
    assert product["seller"] == str(seller["_id"])
    assert product["tags"] == ["basket", "handmade"]
    assert [img["is_main"] for img in product["images"]] == [True, False]
    assert product["ratings"] == {"average": 0, "count": 0}


def test_create_product_validation(client, make_user, auth):
    seller = make_user("seller")
    response = client.post("/api/products/", json=product_payload(price=-1), headers=auth(seller))
    assert response.status_code == 400
    response = client.post("/api/products/", json=product_payload(min_order_quantity=5, max_order_quantity=2),
                           headers=auth(seller))
    assert response.status_code == 400


def test_customer_cannot_create_product(client, make_user, auth):
    response = client.post("/api/products/", json=product_payload(), headers=auth(make_user()))
    assert response.status_code == 403


def test_unapproved_seller_cannot_create_product(client, make_user, auth):
    seller = make_user("seller", is_approved=False)
    response = client.post("/api/products/", json=product_payload(), headers=auth(seller))
    assert response.status_code == 403


def test_listing_hides_inactive_and_blocked_sellers(client, make_user, make_product):
    good = make_user("seller")
    blocked = make_user("seller", is_active=False)
    unapproved = make_user("seller", is_approved=False)
    visible = make_product(good)
    make_product(good, name="Hidden", is_active=False)
    make_product(blocked)
    make_product(unapproved)

    data = client.get("/api/products/").json()["data"]
    assert data["total"] == 1
    assert data["products"][0]["id"] == str(visible["_id"])
    assert data["products"][0]["seller"]["business_name"] == good["business_name"]
    assert "reviews" not in data["products"][0]


def test_listing_filters_and_sort(client, make_user, make_product):
    seller = make_user("seller")
    make_product(seller, name="Cheap Coffee", price=50)
    make_product(seller, name="Fine Coffee", price=500)
    make_product(seller, name="Scarf", price=200, category="clothing", tags=["cotton"],
                 description="Soft cotton scarf from Harar")

    prices = [p["price"] for p in client.get("/api/products/?sort_by=price&sort_order=asc").json()["data"]["products"]]
    assert prices == [50, 200, 500]

    ranged = client.get("/api/products/?min_price=100&max_price=300").json()["data"]
    assert ranged["total"] == 1

    clothing = client.get("/api/products/?category=clothing").json()["data"]
    assert [p["name"] for p in clothing["products"]] == ["Scarf"]


def test_search_escapes_regex(client, make_user, make_product):
    seller = make_user("seller")
    make_product(seller, name="Coffee (1kg)")
    make_product(seller, name="Tea")

    found = client.get("/api/products/search", params={"q": "(1kg"}).json()["data"]
    assert [p["name"] for p in found["products"]] == ["Coffee (1kg)"]
    assert client.get("/api/products/search").status_code == 400


def test_get_product_counts_views(client, db, make_user, make_product):
    product = make_product(make_user("seller"))
    response = client.get(f"/api/products/{product['_id']}")
    assert response.json()["data"]["view_count"] == 1
    assert db.products.find_one({"_id": product["_id"]})["view_count"] == 1


def test_update_own_product_only(client, make_user, make_product, auth):
    owner, other = make_user("seller"), make_user("seller")
    product = make_product(owner)
    response = client.put(f"/api/products/{product['_id']}", json={"price": 120}, headers=auth(owner))
    assert response.json()["data"]["price"] == 120
    response = client.put(f"/api/products/{product['_id']}", json={"price": 1}, headers=auth(other))
    assert response.status_code == 403


def test_update_checks_order_limits(client, make_user, make_product, auth):
    owner = make_user("seller")
    product = make_product(owner, min_order_quantity=3)
    response = client.put(f"/api/products/{product['_id']}", json={"max_order_quantity": 2}, headers=auth(owner))
    assert response.status_code == 400


def test_delete_product(client, db, make_user, make_product, auth):
    owner = make_user("seller")
    product = make_product(owner)
    assert client.delete(f"/api/products/{product['_id']}", headers=auth(owner)).status_code == 200
    assert db.products.count_documents({}) == 0


def test_categories_and_featured(client, make_user, make_product):
    seller = make_user("seller")
    make_product(seller, price=100)
    make_product(seller, price=300, is_featured=True)
    make_product(seller, price=40, category="clothing")

    categories = client.get("/api/products/categories").json()["data"]
    assert categories[0] == {"category": "food_beverages", "count": 2, "avg_price": 200.0}

    featured = client.get("/api/products/featured").json()["data"]
    assert len(featured) == 1 and featured[0]["price"] == 300


def test_my_products(client, make_user, make_product, auth):
    seller = make_user("seller")
    make_product(seller)
    make_product(seller, is_active=False)
    make_product(make_user("seller"))
    headers = auth(seller)
    assert client.get("/api/products/seller/my-products", headers=headers).json()["data"]["total"] == 2
    inactive = client.get("/api/products/seller/my-products?status=inactive", headers=headers).json()["data"]
    assert inactive["total"] == 1


def test_recompute_rating():
    assert recompute_rating([]) == {"average": 0, "count": 0}
    assert recompute_rating([{"rating": 5}, {"rating": 4}, {"rating": 4}]) == {"average": 4.3, "count": 3}
