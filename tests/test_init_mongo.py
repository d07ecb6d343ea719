from eastlink.core.security import verify_password
from eastlink.db.init_mongo import ADMIN_EMAIL, create_collections, seed_admin


def test_create_collections(db):
    create_collections(db)
    create_collections(db)
    assert {"users", "products", "orders", "carts", "notifications"} <= set(db.list_collection_names())


def test_seed_admin_once(db):
    assert seed_admin(db, password="changeme1") is True
    assert seed_admin(db, password="other") is False
    admin = db.users.find_one({"email": ADMIN_EMAIL})
    assert admin["role"] == "admin" and admin["is_approved"] is True
    assert verify_password("changeme1", admin["password"])
