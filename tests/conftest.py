import os

# settings are read at import time
os.environ["AUTH_RATE_LIMIT_MAX"] = "1000"
os.environ["RATE_LIMIT_MAX_REQUESTS"] = "10000"
os.environ["LOG_TO_FILE"] = "false"
os.environ["SMTP_HOST"] = ""
os.environ["ENVIRONMENT"] = "test"

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from eastlink.core.security import create_token, hash_password
from eastlink.db.mongo import get_db
from eastlink.main import app
from eastlink.utils.serializers import utcnow

PASSWORD = "secret123"
_password_hash = None


def _hashed():
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(PASSWORD)
    return _password_hash


@pytest.fixture
def db():
    return mongomock.MongoClient()["eastlink-test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    app.state.rate_limits = {}
    # no context manager: the lifespan would try to reach a real server
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def factory(role="customer", **fields):
        counter["n"] += 1
        now = utcnow()
        user = {
            "first_name": "Test",
            "last_name": f"User{counter['n']}",
            "email": f"{role}{counter['n']}@example.com",
            "phone": "0911000000",
            "password": _hashed(),
            "role": role,
            "address": {"street": "Main St", "city": "Harar"},
            "is_active": True,
            "is_approved": True,
            "ratings": {"average": 0, "count": 0},
            "wishlist": [],
            "created_at": now,
            "updated_at": now,
        }
        if role == "seller":
            user["business_name"] = f"Shop {counter['n']}"
            user["business_license"] = "BL-1"
        if role == "delivery_agent":
            user.update({"vehicle_type": "motorcycle", "license_number": "DL-1",
                         "earnings": {"total": 0, "deliveries": 0}})
        user.update(fields)
        user["_id"] = db.users.insert_one(user).inserted_id
        return user

    return factory


@pytest.fixture
def auth():
    def headers(user):
        return {"Authorization": f"Bearer {create_token(str(user['_id']))}"}
    return headers


@pytest.fixture
def make_product(db):
    def factory(seller, **fields):
        now = utcnow()
        product = {
            "name": "Harar Coffee",
            "description": "Freshly roasted coffee beans",
            "price": 100.0,
            "original_price": 0,
            "category": "food_beverages",
            "images": [{"url": "http://img/1.jpg", "public_id": None, "is_main": True}],
            "seller": seller["_id"],
            "stock": 10,
            "min_order_quantity": 1,
            "max_order_quantity": 100,
            "tags": ["coffee"],
            "is_active": True,
            "is_featured": False,
            "ratings": {"average": 0, "count": 0},
            "reviews": [],
            "view_count": 0,
            "sales_count": 0,
            "created_at": now,
            "updated_at": now,
        }
        product.update(fields)
        product["_id"] = db.products.insert_one(product).inserted_id
        return product

    return factory


@pytest.fixture
def make_order(db):
    def factory(customer, product, quantity=1, **fields):
        now = utcnow()
        order = {
            "order_number": f"EL{ObjectId()}"[:11],
            "customer": customer["_id"],
            "items": [{"product": product["_id"], "quantity": quantity,
                       "price": product["price"], "seller": product["seller"]}],
            "total_amount": product["price"] * quantity,
            "delivery_fee": 50,
            "final_amount": product["price"] * quantity + 50,
            "payment_method": "cash_on_delivery",
            "payment_status": "pending",
            "order_status": "pending",
            "delivery_address": {"street": "Main St", "city": "Harar"},
            "delivery_agent": None,
            "tracking_updates": [],
            "notes": {},
            "issues": [],
            "created_at": now,
            "updated_at": now,
        }
        order.update(fields)
        order["_id"] = db.orders.insert_one(order).inserted_id
        return order

    return factory


@pytest.fixture
def address():
    return {"street": "Jugol Road 4", "city": "Harar"}
