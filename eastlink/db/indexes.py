from pymongo import ASCENDING, DESCENDING, TEXT
from pymongo.database import Database

COLLECTIONS = ("users", "products", "orders", "carts", "notifications")

INDEXES = {
    "users": [
        ([("email", ASCENDING)], {"unique": True}),
        ([("role", ASCENDING), ("is_active", ASCENDING)], {}),
        ([("address.city", ASCENDING)], {}),
    ],
    "products": [
        ([("seller", ASCENDING), ("is_active", ASCENDING)], {}),
        ([("category", ASCENDING), ("is_active", ASCENDING)], {}),
        ([("name", TEXT), ("description", TEXT), ("tags", TEXT)], {}),
        ([("price", ASCENDING)], {}),
        ([("ratings.average", DESCENDING)], {}),
        ([("created_at", DESCENDING)], {}),
        ([("is_featured", DESCENDING), ("is_active", ASCENDING)], {}),
    ],
    "orders": [
        ([("customer", ASCENDING), ("created_at", DESCENDING)], {}),
        ([("items.seller", ASCENDING), ("created_at", DESCENDING)], {}),
        ([("delivery_agent", ASCENDING), ("order_status", ASCENDING)], {}),
        ([("order_number", ASCENDING)], {"unique": True}),
        ([("order_status", ASCENDING), ("created_at", DESCENDING)], {}),
    ],
    "carts": [
        ([("user", ASCENDING)], {"unique": True}),
    ],
    "notifications": [
        ([("user", ASCENDING), ("created_at", DESCENDING)], {}),
    ],
}


def ensure_indexes(db: Database):
    for name, specs in INDEXES.items():
        for keys, options in specs:
            db[name].create_index(keys, **options)
