# eastlink/db/init_mongo.py
# Usage: python -m eastlink.db.init_mongo
import os

from pymongo.database import Database

from eastlink.core.security import hash_password
from eastlink.db.indexes import COLLECTIONS, ensure_indexes
from eastlink.db.mongo import get_db
from eastlink.utils.serializers import utcnow

ADMIN_EMAIL = "admin@eastlinkmarket.et"


def create_collections(db: Database):
    existing = set(db.list_collection_names())
    for name in COLLECTIONS:
        if name not in existing:
            db.create_collection(name)


def seed_admin(db: Database, password: str = None) -> bool:
    """Insert the platform admin if missing. Returns True when a user was created."""
    if db.users.find_one({"email": ADMIN_EMAIL}):
        return False
    now = utcnow()
    db.users.insert_one({
        "first_name": "Admin",
        "last_name": "User",
        "email": ADMIN_EMAIL,
        "phone": "251911000000",
        "password": hash_password(password or os.getenv("ADMIN_PASSWORD", "admin123")),
        "role": "admin",
        "address": {"street": "Admin Street", "city": "Harar", "region": "Harari", "postal_code": "1000"},
        "is_active": True,
        "is_verified": True,
        "is_approved": True,
        "ratings": {"average": 0, "count": 0},
        "created_at": now,
        "updated_at": now,
        "last_login": now,
    })
    return True


def main():
    db = get_db()
    create_collections(db)
    ensure_indexes(db)
    created = seed_admin(db)
    print("Admin user created." if created else "Admin user already present.")
    print("Database initialized successfully!")


if __name__ == "__main__":
    main()
